"""Guest order access tokens.

A guest who placed an order without an account receives a signed,
time-limited token bound to that one order. Tokens are stateless HS256
JWTs; there is no server-side record and no revocation short of rotating
the signing secret.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from ordering.config import Settings, get_settings
from ordering.shared.errors import AccessDeniedError, GuestTokenError

TOKEN_TYPE = "guest_order"


@dataclass(frozen=True)
class GuestGrant:
    """The verified claims of a guest token."""

    order_id: str
    email: str
    phone: str | None
    expires_at: datetime

    def covers(self, order_id) -> bool:
        return self.order_id == str(order_id)


def issue_guest_token(order_id, guest_contact: dict, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    now = datetime.now(UTC)
    payload = {
        "orderId": str(order_id),
        "guestContact": {
            "email": guest_contact.get("email"),
            "phone": guest_contact.get("phone"),
        },
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(days=settings.guest_token_ttl_days),
    }
    return jwt.encode(payload, settings.guest_token_secret, algorithm=settings.guest_token_algorithm)


def token_lifetime_seconds(settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    return int(timedelta(days=settings.guest_token_ttl_days).total_seconds())


def verify_guest_token(token: str | None, order_id=None, settings: Settings | None = None) -> GuestGrant:
    """Decode ``token`` and, when ``order_id`` is given, check it grants that order.

    Raises ``GuestTokenError`` for a missing, forged, expired or foreign token
    and ``AccessDeniedError`` for a valid token bound to another order.
    """
    settings = settings or get_settings()
    if not token:
        raise GuestTokenError("Guest access token is required")

    try:
        payload = jwt.decode(
            token,
            settings.guest_token_secret,
            algorithms=[settings.guest_token_algorithm],
            options={"require": ["exp", "orderId", "type"]},
        )
    except jwt.ExpiredSignatureError:
        raise GuestTokenError("Guest access token has expired")
    except jwt.PyJWTError:
        raise GuestTokenError("Invalid guest access token")

    if payload.get("type") != TOKEN_TYPE:
        raise GuestTokenError("Invalid guest access token type")

    contact = payload.get("guestContact") or {}
    grant = GuestGrant(
        order_id=str(payload["orderId"]),
        email=contact.get("email"),
        phone=contact.get("phone"),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
    )

    if order_id is not None and not grant.covers(order_id):
        raise AccessDeniedError("Guest access token does not grant access to this order")
    return grant
