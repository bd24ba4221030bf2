"""Order payment commands and handler.

``MarkOrderPaid`` is the single funnel through which every settlement
(webhook gateway, redirect gateway, administrative override) reaches an
order. It is idempotent per receipt id.
"""

from datetime import UTC, datetime
from uuid import uuid4

from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import logger, ordering
from ordering.order.order import Order, PaymentReceipt
from ordering.shared.errors import PaymentConflictError


@ordering.command(part_of="Order")
class MarkOrderPaid:
    order_id = Identifier(required=True)
    receipt_id = String(required=True, max_length=255)
    receipt_status = String(required=True, max_length=50)
    gateway = String(required=True, max_length=50)
    settled_at = DateTime(required=True)
    amount = Float()


@ordering.command(part_of="Order")
class RecordPaymentFailure:
    order_id = Identifier(required=True)
    gateway = String(required=True, max_length=50)
    reason = String(max_length=500)


@ordering.command(part_of="Order")
class OverridePaymentStatus:
    order_id = Identifier(required=True)
    is_paid = Boolean(required=True)
    actor_id = String(required=True, max_length=255)
    receipt_id = String(max_length=255)


@ordering.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(MarkOrderPaid)
    def mark_paid(self, command):
        """Returns True when this receipt settled the order, False on a duplicate."""
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        receipt = PaymentReceipt(
            receipt_id=command.receipt_id,
            status=command.receipt_status,
            gateway=command.gateway,
            settled_at=command.settled_at,
            amount=command.amount,
        )

        try:
            newly_paid = order.mark_paid(receipt)
        except PaymentConflictError as exc:
            logger.error(
                "payment_conflict",
                order_id=str(order.id),
                receipt_id=command.receipt_id,
                gateway=command.gateway,
                status=order.status,
                error=exc.message,
            )
            raise

        if not newly_paid:
            logger.info("duplicate_settlement_ignored", order_id=str(order.id), receipt_id=command.receipt_id)
            return False

        repo.add(order)
        logger.info(
            "order_paid",
            order_id=str(order.id),
            receipt_id=command.receipt_id,
            gateway=command.gateway,
            status=order.status,
        )
        return True

    @handle(RecordPaymentFailure)
    def record_payment_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_payment_failure(command.gateway, command.reason)
        repo.add(order)
        logger.info("payment_failure_recorded", order_id=str(order.id), gateway=command.gateway)

    @handle(OverridePaymentStatus)
    def override_payment_status(self, command):
        """Administrative correction of the payment facts. Returns True when they changed."""
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if command.is_paid:
            receipt = PaymentReceipt(
                receipt_id=command.receipt_id or f"manual-{uuid4().hex[:12]}",
                status="manual",
                gateway="manual",
                settled_at=datetime.now(UTC),
                amount=order.pricing.total_price,
            )
            changed = order.mark_paid(receipt)
        else:
            changed = order.revert_payment(reverted_by=command.actor_id)

        if changed:
            repo.add(order)
        logger.warning(
            "payment_status_overridden",
            order_id=str(order.id),
            is_paid=command.is_paid,
            actor_id=command.actor_id,
            changed=changed,
        )
        return changed
