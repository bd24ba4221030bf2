"""Mailer registry.

get_mailer() / set_mailer() swap the adapter that delivers order messages;
FakeOrderMailer is used until a provider-backed OrderMailer is installed.
"""

from ordering.notifications.fake_mailer import FakeOrderMailer
from ordering.notifications.port import OrderMailer

_current_mailer: OrderMailer | None = None


def get_mailer() -> OrderMailer:
    global _current_mailer
    if _current_mailer is None:
        _current_mailer = FakeOrderMailer()
    return _current_mailer


def set_mailer(mailer: OrderMailer) -> None:
    global _current_mailer
    _current_mailer = mailer


def reset_mailer() -> None:
    global _current_mailer
    _current_mailer = None
