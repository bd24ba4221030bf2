"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="ShoppingCart")
class CartItemAdded:
    """An item was added to a cart (or its quantity increased)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartsMerged:
    """An anonymous session cart was merged into a customer's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_cart_id = Identifier(required=True)
    source_session_id = String()
    items_merged_count = Integer(required=True)
    total_items = Integer(required=True)


@ordering.event(part_of="ShoppingCart")
class CartRetired:
    """A merged session cart was retired after its items moved to the customer's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    merged_into_cart_id = Identifier(required=True)


@ordering.event(part_of="ShoppingCart")
class CartConverted:
    """The cart was checked out into an order."""

    __version__ = 1

    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier()
