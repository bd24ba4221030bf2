"""Cart conversion: close the purchaser's active cart once their order is placed."""

from protean import handle
from protean.exceptions import ProteanException
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.cart.items import find_active_cart
from ordering.domain import logger, ordering


@ordering.command(part_of="ShoppingCart")
class ConvertCart:
    order_id = Identifier(required=True)
    customer_id = Identifier()
    session_id = String(max_length=255)


@ordering.command_handler(part_of=ShoppingCart)
class ConvertCartHandler:
    @handle(ConvertCart)
    def convert_cart(self, command):
        cart = find_active_cart(command.customer_id, command.session_id)
        if cart is None or not cart.items:
            return False

        cart.convert_to_order(command.order_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return True


def convert_cart_after_checkout(order_id, customer_id=None, session_id=None):
    """Best effort: the order stands even when the cart cannot be closed."""
    if not customer_id and not session_id:
        return False
    try:
        return current_domain.process(
            ConvertCart(order_id=order_id, customer_id=customer_id, session_id=session_id),
            asynchronous=False,
        )
    except ProteanException as exc:
        logger.warning("cart_conversion_failed", order_id=str(order_id), error=str(exc))
        return False
