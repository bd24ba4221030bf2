"""Cart merge at login.

When an anonymous visitor signs in, the items of their session cart move
into their customer cart. The customer cart is saved first, in its own unit
of work; only after that succeeds is the session cart retired in a second
one. A failure in between leaves the session cart active, and a retried
merge recognises it through ``merged_cart_ids`` so nothing is counted twice.

A failed merge never fails the login: ``merge_on_login`` reports the outcome
instead of raising.
"""

from dataclasses import asdict, dataclass

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.items import find_active_cart
from ordering.domain import logger, ordering


@dataclass(frozen=True)
class CartMergeResult:
    success: bool
    message: str
    item_count: int = 0

    def to_dict(self):
        return asdict(self)


@ordering.command(part_of="ShoppingCart")
class MergeCarts:
    customer_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


@ordering.command(part_of="ShoppingCart")
class RetireMergedCart:
    cart_id = Identifier(required=True)
    merged_into_cart_id = Identifier(required=True)


@ordering.command_handler(part_of=ShoppingCart)
class MergeCartsHandler:
    @handle(MergeCarts)
    def merge_carts(self, command):
        """Fold the session cart into the customer cart.

        Returns ``(session_cart_id, customer_cart_id, total_items)`` or None
        when the session has no active cart.
        """
        session_cart = find_active_cart(session_id=command.session_id)
        if session_cart is None:
            return None

        customer_cart = find_active_cart(customer_id=command.customer_id)
        if customer_cart is None:
            customer_cart = ShoppingCart.create(customer_id=command.customer_id)

        merged = customer_cart.merge_from(session_cart)
        if merged:
            current_domain.repository_for(ShoppingCart).add(customer_cart)
        return str(session_cart.id), str(customer_cart.id), customer_cart.total_items

    @handle(RetireMergedCart)
    def retire_merged_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.retire(command.merged_into_cart_id)
        repo.add(cart)


def merge_on_login(customer_id, session_id) -> CartMergeResult | None:
    """Merge the session cart of a visitor who just signed in.

    Returns None when there was nothing to merge.
    """
    if not session_id:
        return None

    try:
        outcome = current_domain.process(
            MergeCarts(customer_id=customer_id, session_id=session_id),
            asynchronous=False,
        )
        if outcome is None:
            return None

        session_cart_id, customer_cart_id, total_items = outcome
        current_domain.process(
            RetireMergedCart(cart_id=session_cart_id, merged_into_cart_id=customer_cart_id),
            asynchronous=False,
        )
    except Exception as exc:
        logger.error(
            "cart_merge_failed",
            customer_id=str(customer_id),
            session_id=session_id,
            error=str(exc),
            exc_info=True,
        )
        return CartMergeResult(success=False, message="Error merging carts, but login was successful")

    logger.info("carts_merged", customer_id=str(customer_id), cart_id=customer_cart_id, total_items=total_items)
    return CartMergeResult(success=True, message="Guest cart merged successfully", item_count=total_items)
