"""Domain events for the Order aggregate.

Events are versioned, immutable facts. They are raised inside the same unit
of work as the state change and drive customer notifications.
"""

from protean.fields import Boolean, Date, DateTime, Float, Identifier, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A cart was turned into a durable order at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    tracking_code = String(required=True)
    customer_id = Identifier()
    guest_email = String()
    items = Text(required=True)  # JSON: list of item snapshots
    payment_method = String(required=True)
    shipping_option = String(required=True)
    total_price = Float(required=True)
    estimated_delivery_date = Date()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaid:
    """A settlement receipt was recorded against the order for the first time."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    receipt_id = String(required=True)
    gateway = String(required=True)
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentFailed:
    """A gateway reported a failed payment attempt. The order is unchanged otherwise."""

    __version__ = 1

    order_id = Identifier(required=True)
    gateway = String(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderPaymentReverted:
    """An administrator cleared the payment facts of an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_receipt_id = String()
    reverted_by = String(required=True)
    reverted_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderProcessing:
    """Fulfillment of the order started."""

    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderShipped:
    """The order left the warehouse."""

    __version__ = 1

    order_id = Identifier(required=True)
    carrier_tracking_number = String()
    shipped_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderDelivered:
    """The order reached the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and its stock returned."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
    cancelled_by = String(required=True)
    was_paid = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class TrackingNumberAttached:
    """A carrier tracking number was recorded for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    carrier_tracking_number = String(required=True)


@ordering.event(part_of="Order")
class ShippingOptionChanged:
    """The shipping option changed before shipment; the delivery estimate moved with it."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_option = String(required=True)
    new_option = String(required=True)
    estimated_delivery_date = Date(required=True)
