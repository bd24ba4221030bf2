"""PaymentRequest aggregate — one redirect-gateway payment session.

Persisting the authority with the amount we asked for lets the callback
check that the authority belongs to the order it names and that the amount
being verified is the amount that was requested.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering


class PaymentRequestStatus(Enum):
    REQUESTED = "Requested"
    VERIFIED = "Verified"
    FAILED = "Failed"


@ordering.aggregate
class PaymentRequest:
    authority: String(required=True, max_length=100, unique=True)
    order_id: Identifier(required=True)
    amount: Integer(required=True, min_value=1)
    status: String(choices=PaymentRequestStatus, default=PaymentRequestStatus.REQUESTED.value)
    ref_id: String(max_length=100)
    failure_reason: String(max_length=500)
    requested_at: DateTime()
    resolved_at: DateTime()

    @classmethod
    def open(cls, authority, order_id, amount):
        return cls(
            authority=authority,
            order_id=order_id,
            amount=amount,
            status=PaymentRequestStatus.REQUESTED.value,
            requested_at=datetime.now(UTC),
        )

    def mark_verified(self, ref_id):
        self.status = PaymentRequestStatus.VERIFIED.value
        self.ref_id = ref_id
        self.resolved_at = datetime.now(UTC)

    def mark_failed(self, reason):
        if self.status == PaymentRequestStatus.VERIFIED.value:
            return
        self.status = PaymentRequestStatus.FAILED.value
        self.failure_reason = (reason or "")[:500]
        self.resolved_at = datetime.now(UTC)


def find_payment_request(authority):
    results = current_domain.repository_for(PaymentRequest)._dao.query.filter(authority=authority).all().items
    return results[0] if results else None


@ordering.command(part_of="PaymentRequest")
class OpenPaymentRequest:
    authority = String(required=True, max_length=100)
    order_id = Identifier(required=True)
    amount = Integer(required=True, min_value=1)


@ordering.command(part_of="PaymentRequest")
class ResolvePaymentRequest:
    authority = String(required=True, max_length=100)
    outcome = String(required=True, choices=PaymentRequestStatus)
    ref_id = String(max_length=100)
    reason = String(max_length=500)


@ordering.command_handler(part_of=PaymentRequest)
class PaymentRequestHandler:
    @handle(OpenPaymentRequest)
    def open_payment_request(self, command):
        request = PaymentRequest.open(command.authority, command.order_id, command.amount)
        current_domain.repository_for(PaymentRequest).add(request)
        return str(request.id)

    @handle(ResolvePaymentRequest)
    def resolve_payment_request(self, command):
        request = find_payment_request(command.authority)
        if request is None:
            return False

        if command.outcome == PaymentRequestStatus.VERIFIED.value:
            request.mark_verified(command.ref_id)
        else:
            request.mark_failed(command.reason)
        current_domain.repository_for(PaymentRequest).add(request)
        return True
