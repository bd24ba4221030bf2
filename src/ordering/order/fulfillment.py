"""Order fulfillment: status changes, carrier tracking and shipping option."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.order.cancellation import cancel_and_restock
from ordering.order.order import CancellationActor, Order, OrderStatus


@ordering.command(part_of="Order")
class AdvanceOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class AttachTrackingNumber:
    order_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    notes = String(max_length=1000)


@ordering.command(part_of="Order")
class ChangeShippingOption:
    order_id = Identifier(required=True)
    shipping_option = String(required=True, max_length=20)


@ordering.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(AdvanceOrderStatus)
    def advance_status(self, command):
        """Apply an administrative status change. Returns True when the order changed."""
        if command.status not in {status.value for status in OrderStatus}:
            raise ValidationError({"status": [f"Unknown order status {command.status!r}"]})

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.status

        if command.status == OrderStatus.CANCELLED.value:
            changed = cancel_and_restock(order, CancellationActor.ADMIN.value, command.reason)
        else:
            changed = order.advance(command.status)

        if changed:
            repo.add(order)
            logger.info("order_status_changed", order_id=str(order.id), previous=previous, status=order.status)
        return changed

    @handle(AttachTrackingNumber)
    def attach_tracking_number(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.attach_tracking_number(command.tracking_number, notes=command.notes)
        repo.add(order)
        logger.info(
            "tracking_number_attached",
            order_id=str(order.id),
            carrier_tracking_number=order.carrier_tracking_number,
            status=order.status,
        )

    @handle(ChangeShippingOption)
    def change_shipping_option(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.change_shipping_option(command.shipping_option)
        if changed:
            repo.add(order)
        return changed
