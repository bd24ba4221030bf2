"""Adding items to carts, and active-cart lookups."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import CartStatus, ShoppingCart
from ordering.domain import ordering
from ordering.stock.product import Product


def find_active_cart(customer_id=None, session_id=None):
    """The active cart of a customer, or of an anonymous session when no customer is given."""
    dao = current_domain.repository_for(ShoppingCart)._dao
    if customer_id:
        results = dao.query.filter(customer_id=customer_id, status=CartStatus.ACTIVE.value).all().items
    elif session_id:
        results = dao.query.filter(session_id=session_id, status=CartStatus.ACTIVE.value).all().items
        results = [cart for cart in results if not cart.customer_id]
    else:
        return None
    return results[0] if results else None


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    customer_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        """Add a product to the caller's active cart, creating the cart on first use."""
        if not command.customer_id and not command.session_id:
            raise ValidationError({"cart": ["A customer or session is required"]})

        product = current_domain.repository_for(Product).get(command.product_id)

        repo = current_domain.repository_for(ShoppingCart)
        cart = find_active_cart(command.customer_id, command.session_id)
        if cart is None:
            cart = ShoppingCart.create(customer_id=command.customer_id, session_id=command.session_id)

        cart.add_item(
            product_id=str(product.id),
            name=product.name,
            price=product.selling_price,
            quantity=command.quantity,
            image_url=product.image_url,
        )
        repo.add(cart)
        return str(cart.id)
