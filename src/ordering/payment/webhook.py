"""Webhook gateway entry point.

The signature is checked before the payload is trusted; a request that fails
verification is rejected with no side effects. Authenticated events are
always acknowledged, even when they cannot be applied (unknown order,
settlement conflict): the gateway would otherwise retry an event that can
never succeed. Those cases are logged for follow-up instead.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.domain import logger
from ordering.order.order import OrderStatus, PaymentMethod
from ordering.order.payment import RecordPaymentFailure
from ordering.payment.confirmation import WebhookConfirmation, reconcile
from ordering.payment.gateway import get_webhook_gateway
from ordering.payment.gateway.port import PaymentIntentResult
from ordering.payment.gateway.stripe_adapter import MINOR_UNITS
from ordering.shared.concurrency import process_with_retry
from ordering.shared.errors import InvalidTransitionError, PaymentConflictError

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass(frozen=True)
class WebhookAck:
    outcome: str
    order_id: str | None = None
    received: bool = True


def process_webhook(payload: bytes, signature: str) -> WebhookAck:
    """Verify, parse and apply one webhook delivery.

    Raises ``GatewaySignatureError`` / ``GatewayPayloadError`` for requests
    that must be rejected; anything else unexpected propagates.
    """
    event = get_webhook_gateway().verify_and_parse(payload, signature)
    log = logger.bind(event_id=event.event_id, event_type=event.event_type, order_id=event.order_id)

    if event.event_type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
        log.info("webhook_event_ignored")
        return WebhookAck(outcome="ignored")

    if not event.order_id:
        log.warning("webhook_event_without_order")
        return WebhookAck(outcome="missing_order_id")

    try:
        if event.event_type == PAYMENT_SUCCEEDED:
            outcome = reconcile(
                WebhookConfirmation(
                    order_id=event.order_id,
                    payment_intent_id=event.receipt_id or event.event_id,
                    status=event.status or "succeeded",
                    settled_at=event.created_at,
                    amount=event.amount,
                )
            )
            return WebhookAck(outcome="paid" if outcome.newly_paid else "duplicate", order_id=event.order_id)

        process_with_retry(
            RecordPaymentFailure(
                order_id=event.order_id,
                gateway="webhook_gateway",
                reason=event.failure_reason or "Payment failed",
            )
        )
        log.info("webhook_payment_failed", reason=event.failure_reason)
        return WebhookAck(outcome="failure_recorded", order_id=event.order_id)
    except ObjectNotFoundError:
        log.warning("webhook_order_not_found")
        return WebhookAck(outcome="order_not_found", order_id=event.order_id)
    except PaymentConflictError as exc:
        log.error("webhook_settlement_rejected", error=exc.message, refund_required=True)
        return WebhookAck(outcome="conflict", order_id=event.order_id)


def initiate_webhook_payment(order) -> PaymentIntentResult:
    """Open a webhook-gateway payment intent for ``order``.

    The intent carries the order id in its metadata; the gateway echoes it
    back on the ``payment_intent.*`` events that settle the order.
    """
    if order.is_paid:
        raise PaymentConflictError("Order is already paid", order_id=str(order.id))
    if OrderStatus(order.status) == OrderStatus.CANCELLED:
        raise InvalidTransitionError("Cannot pay for a cancelled order", order_id=str(order.id))
    if order.payment_method != PaymentMethod.WEBHOOK_GATEWAY.value:
        raise ValidationError({"payment_method": ["Order is not set up for webhook gateway payment"]})

    amount = int(round(order.pricing.total_price * MINOR_UNITS))
    intent = get_webhook_gateway().create_payment_intent(
        order_id=str(order.id),
        amount=amount,
        metadata={"orderNumber": order.order_number},
    )
    logger.info("webhook_payment_initiated", order_id=str(order.id), intent_id=intent.intent_id, amount=amount)
    return intent
