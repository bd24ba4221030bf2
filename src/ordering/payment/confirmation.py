"""Payment confirmations and their reconciliation onto orders.

Both gateways end up here. Each confirmation variant knows how to describe
its settlement receipt; ``reconcile`` turns it into a ``MarkOrderPaid``
command, which is idempotent per receipt id.
"""

from dataclasses import dataclass
from datetime import datetime

from ordering.domain import logger
from ordering.order.payment import MarkOrderPaid
from ordering.shared.concurrency import process_with_retry


@dataclass(frozen=True)
class WebhookConfirmation:
    """A ``payment_intent.succeeded`` event pushed by the webhook gateway."""

    order_id: str
    payment_intent_id: str
    status: str
    settled_at: datetime
    amount: float | None = None

    gateway = "webhook_gateway"

    @property
    def receipt_id(self):
        return self.payment_intent_id


@dataclass(frozen=True)
class RedirectConfirmation:
    """A verified payment returned through the redirect gateway's callback."""

    order_id: str
    authority: str
    ref_id: str | None
    code: int
    settled_at: datetime
    amount: int | None = None

    gateway = "redirect_gateway"

    @property
    def receipt_id(self):
        # Every callback retry for one session carries the same authority
        return self.authority

    @property
    def status(self):
        return f"verified:{self.ref_id}" if self.ref_id else f"verified:{self.code}"


PaymentConfirmation = WebhookConfirmation | RedirectConfirmation


@dataclass(frozen=True)
class ReconciliationOutcome:
    order_id: str
    newly_paid: bool


def reconcile(confirmation: PaymentConfirmation) -> ReconciliationOutcome:
    """Record ``confirmation`` on its order.

    Raises ``ObjectNotFoundError`` for an unknown order and
    ``PaymentConflictError`` when the order is cancelled or already settled
    by a different receipt.
    """
    if not isinstance(confirmation, (WebhookConfirmation, RedirectConfirmation)):
        raise TypeError(f"Unsupported payment confirmation {type(confirmation).__name__}")

    newly_paid = process_with_retry(
        MarkOrderPaid(
            order_id=confirmation.order_id,
            receipt_id=confirmation.receipt_id,
            receipt_status=confirmation.status,
            gateway=confirmation.gateway,
            settled_at=confirmation.settled_at,
            amount=confirmation.amount,
        )
    )

    logger.info(
        "payment_reconciled",
        order_id=confirmation.order_id,
        gateway=confirmation.gateway,
        receipt_id=confirmation.receipt_id,
        newly_paid=newly_paid,
    )
    return ReconciliationOutcome(order_id=confirmation.order_id, newly_paid=bool(newly_paid))
