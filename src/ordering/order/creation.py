"""Order placement: command and handler.

Each requested line is resolved against the Product record: the name, price
and image are snapshotted onto the order and the quantity is checked
against current stock. Stock itself is not touched here.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.order.order import Order, ShippingOption
from ordering.order.pricing import calculate_pricing
from ordering.order.queries import find_by_order_number
from ordering.shared.errors import OrderNumberCollisionError
from ordering.stock.product import Product


@ordering.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier()
    guest_contact = Text()  # JSON: {email, phone}
    items = Text(required=True)  # JSON: [{product_id, quantity}]
    shipping_address = Text(required=True)  # JSON: canonical address dict
    shipping_option = String(max_length=20, default=ShippingOption.STANDARD.value)
    payment_method = String(required=True, max_length=50)
    promo_code = String(max_length=50)
    notes = String(max_length=1000)


def snapshot_items(requested_items):
    """Resolve requested ``{product_id, quantity}`` lines into item snapshots.

    Repeated lines for one product are combined before the stock check.
    """
    quantities = {}
    for line in requested_items:
        quantity = int(line.get("quantity", 0))
        if quantity < 1:
            raise ValidationError({"items": ["Quantity must be at least 1"]})
        product_id = str(line["product_id"])
        quantities[product_id] = quantities.get(product_id, 0) + quantity

    repo = current_domain.repository_for(Product)
    snapshots = []
    for product_id, quantity in quantities.items():
        product = repo.get(product_id)
        if not product.is_active:
            raise ValidationError({"items": [f"{product.name} is no longer available"]})
        if quantity > product.stock:
            raise ValidationError({"items": [f"Only {product.stock} units of {product.name} in stock"]})
        snapshots.append(
            {
                "product_id": product_id,
                "name": product.name,
                "price": product.selling_price,
                "image_url": product.image_url,
                "quantity": quantity,
            }
        )
    return snapshots


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        requested = json.loads(command.items) if command.items else []
        if not requested:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        items_data = snapshot_items(requested)
        pricing = calculate_pricing(
            [(item["price"], item["quantity"]) for item in items_data],
            shipping_option=command.shipping_option or ShippingOption.STANDARD.value,
            promo_code=command.promo_code,
        )

        order = Order.place(
            items_data=items_data,
            shipping_address=json.loads(command.shipping_address),
            payment_method=command.payment_method,
            pricing=pricing,
            customer_id=command.customer_id,
            guest_contact=json.loads(command.guest_contact) if command.guest_contact else None,
            shipping_option=command.shipping_option or ShippingOption.STANDARD.value,
            promo_code=command.promo_code.strip().upper() if command.promo_code else None,
            notes=command.notes,
        )

        if find_by_order_number(order.order_number) is not None:
            logger.warning("order_number_collision", order_number=order.order_number)
            raise OrderNumberCollisionError(
                f"Order number {order.order_number} is already taken",
                order_number=order.order_number,
            )

        current_domain.repository_for(Order).add(order)
        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order.order_number,
            total_price=order.pricing.total_price,
            guest=order.is_guest_order,
        )
        return str(order.id)
