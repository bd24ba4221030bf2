"""Human-facing order identifiers.

Two formats are issued for every order:

* Order number ``KRN-YYYYMMDD-NNNN`` shown on receipts and emails.
* Tracking code ``KN-YYYYMMDD-XXXXXX-HHHHHH`` used for public tracking.
  ``XXXXXX`` is random over ``[A-Z0-9]`` and ``HHHHHH`` is the last six hex
  digits of the order id, so a code can be cross-checked against its order.

Both grammars are fixed-width and validated by regular expressions; the
parsers additionally require the embedded date to be a real calendar date.
Uniqueness is backed by unique fields on the Order aggregate.
"""

import re
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, date, datetime

from ordering.config import get_settings

_TRACKING_ALPHABET = string.ascii_uppercase + string.digits

ORDER_NUMBER_PATTERN = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<date>\d{8})-(?P<sequence>\d{4})$")
TRACKING_CODE_PATTERN = re.compile(
    r"^(?P<prefix>[A-Z]+)-(?P<date>\d{8})-(?P<random>[A-Z0-9]{6})-(?P<id_part>[A-F0-9]{6})$"
)


@dataclass(frozen=True)
class OrderNumberParts:
    prefix: str
    date: date
    sequence: str


@dataclass(frozen=True)
class TrackingCodeParts:
    prefix: str
    date: date
    random_part: str
    id_part: str


def _today(today: date | None) -> date:
    return today or datetime.now(UTC).date()


def _parse_date(value: str) -> date | None:
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError:
        return None


def order_id_suffix(order_id) -> str:
    """Last six hex digits of an order id, upper-cased."""
    hex_digits = re.sub(r"[^0-9a-fA-F]", "", str(order_id))
    if len(hex_digits) < 6:
        raise ValueError(f"Order id {order_id!r} has fewer than six hex digits")
    return hex_digits[-6:].upper()


def generate_order_number(today: date | None = None, rng=None) -> str:
    """Return a new order number such as ``KRN-20240115-4821``.

    ``rng`` may be any object with a ``randint`` method; ``secrets.SystemRandom``
    is used by default.
    """
    rng = rng or secrets.SystemRandom()
    prefix = get_settings().order_number_prefix
    return f"{prefix}-{_today(today):%Y%m%d}-{rng.randint(1000, 9999)}"


def generate_tracking_code(order_id, today: date | None = None) -> str:
    """Return a new tracking code bound to ``order_id``."""
    prefix = get_settings().tracking_code_prefix
    random_part = "".join(secrets.choice(_TRACKING_ALPHABET) for _ in range(6))
    return f"{prefix}-{_today(today):%Y%m%d}-{random_part}-{order_id_suffix(order_id)}"


def is_valid_order_number(value) -> bool:
    if not isinstance(value, str):
        return False
    match = ORDER_NUMBER_PATTERN.match(value)
    return bool(match) and match.group("prefix") == get_settings().order_number_prefix


def is_valid_tracking_code(value) -> bool:
    if not isinstance(value, str):
        return False
    match = TRACKING_CODE_PATTERN.match(value)
    return bool(match) and match.group("prefix") == get_settings().tracking_code_prefix


def parse_order_number(value) -> OrderNumberParts | None:
    if not is_valid_order_number(value):
        return None
    match = ORDER_NUMBER_PATTERN.match(value)
    issued_on = _parse_date(match.group("date"))
    if issued_on is None:
        return None
    return OrderNumberParts(prefix=match.group("prefix"), date=issued_on, sequence=match.group("sequence"))


def parse_tracking_code(value) -> TrackingCodeParts | None:
    if not is_valid_tracking_code(value):
        return None
    match = TRACKING_CODE_PATTERN.match(value)
    issued_on = _parse_date(match.group("date"))
    if issued_on is None:
        return None
    return TrackingCodeParts(
        prefix=match.group("prefix"),
        date=issued_on,
        random_part=match.group("random"),
        id_part=match.group("id_part"),
    )


def tracking_code_matches_order(code, order_id) -> bool:
    """True when the id segment of ``code`` was derived from ``order_id``."""
    parts = parse_tracking_code(code)
    if parts is None:
        return False
    try:
        return parts.id_part == order_id_suffix(order_id)
    except ValueError:
        return False
