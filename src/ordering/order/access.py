"""Who may read or change an order.

The upstream authentication layer identifies the caller; this module only
decides. Purchasers see and cancel their own orders (customers by id,
guests by a token bound to the order); administrators do everything.
"""

from dataclasses import dataclass

from ordering.guest.access import GuestGrant
from ordering.shared.errors import AccessDeniedError, GuestTokenError

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    user_id: str | None = None
    role: str | None = None
    guest: GuestGrant | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def actor(self) -> str:
        if self.is_admin:
            return "admin"
        if self.is_authenticated:
            return "customer"
        return "guest"


def require_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise AccessDeniedError("Administrator access required")


def is_purchaser(order, principal: Principal) -> bool:
    if order.customer_id:
        return order.owned_by(principal.user_id)
    return principal.guest is not None and principal.guest.covers(order.id)


def authorize_purchaser(order, principal: Principal) -> None:
    """Allow the purchaser of ``order`` or an administrator."""
    if principal.is_admin or is_purchaser(order, principal):
        return
    if order.is_guest_order and principal.guest is None and not principal.is_authenticated:
        raise GuestTokenError("Guest access token is required")
    raise AccessDeniedError("You are not allowed to access this order", order_id=str(order.id))
