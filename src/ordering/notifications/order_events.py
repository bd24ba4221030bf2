"""Customer messages for order events.

Fire-and-forget: a delivery failure is logged and never fails the change
that triggered it. Each event is raised only for a real state change (a
duplicate settlement raises no ``OrderPaid``), so every message corresponds
to exactly one transition.
"""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.notifications import get_mailer
from ordering.notifications.port import MessageKind, OrderMessage
from ordering.order.events import OrderCancelled, OrderPaid, OrderPlaced
from ordering.order.order import Order


def recipient_for(order):
    if order.guest_contact is not None:
        return order.guest_contact.email
    if order.shipping_address is not None and order.shipping_address.email:
        return order.shipping_address.email
    return None


def notify_customer(order_id, kind: MessageKind, subject, body):
    log = logger.bind(order_id=str(order_id), kind=kind.value)
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        log.warning("order_message_skipped", reason="order not found")
        return

    recipient = recipient_for(order)
    if not recipient:
        log.info("order_message_skipped", reason="no recipient")
        return

    message = OrderMessage(
        recipient=recipient,
        order_id=str(order.id),
        order_number=order.order_number,
        kind=kind,
        subject=subject,
        body=body,
    )
    try:
        receipt = get_mailer().deliver(message)
    except Exception as exc:
        log.error("order_message_failed", error=str(exc))
        return

    if not receipt.delivered:
        log.error("order_message_failed", error=receipt.error)
    else:
        log.info("order_message_sent", message_id=receipt.message_id)


@ordering.event_handler(part_of=Order)
class OrderNotificationsHandler:
    @handle(OrderPlaced)
    def on_order_placed(self, event: OrderPlaced) -> None:
        notify_customer(
            event.order_id,
            MessageKind.ORDER_PLACED,
            subject=f"Order {event.order_number} received",
            body=(
                f"Thank you for your order {event.order_number}.\n"
                f"Total: {event.total_price:,.0f}\n"
                f"Track it any time with code {event.tracking_code}."
            ),
        )

    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        notify_customer(
            event.order_id,
            MessageKind.PAYMENT_CONFIRMED,
            subject=f"Payment confirmed for order {event.order_number}",
            body=f"We received your payment (receipt {event.receipt_id}). Your order is being prepared.",
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        body = f"Your order {event.order_number} has been cancelled."
        if event.reason:
            body += f"\nReason: {event.reason}"
        if event.was_paid:
            body += "\nYour payment will be refunded."
        notify_customer(
            event.order_id, MessageKind.ORDER_CANCELLED, subject=f"Order {event.order_number} cancelled", body=body
        )
