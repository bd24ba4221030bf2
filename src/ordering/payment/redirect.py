"""Redirect gateway flow: open a payment session, then settle it from the callback.

The customer's browser comes back to the callback URL with an authority token
and a status flag. Neither is trusted on its own: the authority must belong
to a payment session opened for the named order, the amount recomputed from
the order must equal the amount requested, and the gateway is asked
server-to-server whether the payment really happened.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urlencode

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.config import Settings, get_settings
from ordering.domain import logger
from ordering.order.order import Order, OrderStatus, PaymentMethod
from ordering.order.payment import RecordPaymentFailure
from ordering.payment.confirmation import RedirectConfirmation, reconcile
from ordering.payment.gateway import get_redirect_gateway
from ordering.payment.gateway.port import PaymentRequestResult
from ordering.payment.payment_request import (
    OpenPaymentRequest,
    PaymentRequestStatus,
    ResolvePaymentRequest,
    find_payment_request,
)
from ordering.shared.concurrency import process_with_retry
from ordering.shared.errors import (
    GatewayAmountMismatchError,
    GatewayError,
    GatewayTimeoutError,
    InvalidTransitionError,
    PaymentConflictError,
)

_SUCCESS_FLAGS = {"ok", "success"}


def gateway_amount(total_price, settings: Settings | None = None) -> int:
    """Order total converted to the gateway's currency unit."""
    settings = settings or get_settings()
    return int(round(total_price * settings.redirect_amount_multiplier))


@dataclass(frozen=True)
class CallbackOutcome:
    order_id: str
    success: bool
    error: str | None = None
    retryable: bool = False

    def redirect_url(self, frontend_url: str) -> str:
        base = frontend_url.rstrip("/")
        if self.success:
            return f"{base}/payment/success?{urlencode({'orderId': self.order_id})}"
        params = {"orderId": self.order_id, "error": self.error or "Payment failed"}
        if self.retryable:
            params["retryable"] = "true"
        return f"{base}/payment/failed?{urlencode(params)}"


def initiate_redirect_payment(order, settings: Settings | None = None) -> PaymentRequestResult:
    """Open a redirect-gateway payment session for ``order``."""
    settings = settings or get_settings()

    if order.is_paid:
        raise PaymentConflictError("Order is already paid", order_id=str(order.id))
    if OrderStatus(order.status) == OrderStatus.CANCELLED:
        raise InvalidTransitionError("Cannot pay for a cancelled order", order_id=str(order.id))
    if order.payment_method != PaymentMethod.REDIRECT_GATEWAY.value:
        raise ValidationError({"payment_method": ["Order is not set up for redirect gateway payment"]})

    amount = gateway_amount(order.pricing.total_price, settings)
    contact = order.guest_contact or order.shipping_address
    callback_url = f"{settings.callback_base_url.rstrip('/')}/payments/redirect-gateway/callback?" + urlencode(
        {"orderId": str(order.id)}
    )

    result = get_redirect_gateway().request_payment(
        amount=amount,
        description=f"Payment for order {order.order_number}",
        callback_url=callback_url,
        email=getattr(contact, "email", None),
        mobile=getattr(contact, "phone", None),
        order_id=str(order.id),
    )

    current_domain.process(
        OpenPaymentRequest(authority=result.authority, order_id=str(order.id), amount=amount),
        asynchronous=False,
    )
    logger.info("redirect_payment_initiated", order_id=str(order.id), authority=result.authority, amount=amount)
    return result


def _ensure_amount(expected, actual, source):
    if actual != expected:
        raise GatewayAmountMismatchError("Payment amount mismatch", expected=expected, **{source: actual})


def _fail(order_id, authority, reason, retryable=False, public_error=None):
    if authority and not retryable:
        current_domain.process(
            ResolvePaymentRequest(authority=authority, outcome=PaymentRequestStatus.FAILED.value, reason=reason),
            asynchronous=False,
        )
    return CallbackOutcome(order_id=str(order_id), success=False, error=public_error or reason, retryable=retryable)


def handle_redirect_callback(authority, status, order_id, settings: Settings | None = None) -> CallbackOutcome:
    """Settle (or reject) a redirect payment from its callback parameters.

    Raises ``ValidationError`` for missing parameters and
    ``ObjectNotFoundError`` for an unknown order; every other outcome is
    reported through the returned ``CallbackOutcome``.
    """
    settings = settings or get_settings()

    missing = [name for name, value in (("Authority", authority), ("orderId", order_id)) if not value]
    if missing:
        raise ValidationError({name: ["This parameter is required"] for name in missing})

    order = current_domain.repository_for(Order).get(order_id)
    log = logger.bind(order_id=str(order.id), authority=authority)

    payment_request = find_payment_request(authority)
    if payment_request is None or str(payment_request.order_id) != str(order.id):
        log.warning("redirect_callback_unknown_authority")
        return CallbackOutcome(order_id=str(order.id), success=False, error="Unknown payment session")

    if order.is_paid:
        if order.payment_result.receipt_id == authority:
            log.info("redirect_callback_already_settled")
            return CallbackOutcome(order_id=str(order.id), success=True)
        log.error("redirect_callback_for_paid_order", recorded_receipt_id=order.payment_result.receipt_id)
        return _fail(order.id, authority, "Order is already paid")

    # Never capture funds for an order that can no longer be fulfilled
    if OrderStatus(order.status) == OrderStatus.CANCELLED:
        log.warning("redirect_callback_for_cancelled_order")
        return _fail(order.id, authority, "Order was cancelled")

    if (status or "").strip().lower() not in _SUCCESS_FLAGS:
        log.info("redirect_payment_cancelled", status=status)
        return _fail(order.id, authority, "Payment was cancelled")

    expected_amount = gateway_amount(order.pricing.total_price, settings)
    try:
        _ensure_amount(expected_amount, payment_request.amount, "requested")
        verification = get_redirect_gateway().verify_payment(authority, expected_amount)
        if verification.amount is not None:
            _ensure_amount(expected_amount, verification.amount, "reported")
    except GatewayAmountMismatchError as exc:
        log.error("redirect_amount_mismatch", **exc.details)
        return _fail(order.id, authority, "Payment amount mismatch")
    except GatewayTimeoutError:
        log.warning("redirect_verification_timeout")
        return _fail(order.id, authority, "Payment gateway timeout", retryable=True)
    except GatewayError as exc:
        log.error("redirect_verification_error", error=exc.message)
        return _fail(order.id, authority, "Payment verification failed")

    if not verification.success:
        log.info("redirect_payment_declined", code=verification.code, message=verification.message)
        process_with_retry(
            RecordPaymentFailure(order_id=str(order.id), gateway="redirect_gateway", reason=verification.message)
        )
        return _fail(order.id, authority, verification.message)

    try:
        reconcile(
            RedirectConfirmation(
                order_id=str(order.id),
                authority=authority,
                ref_id=verification.ref_id,
                code=verification.code,
                settled_at=datetime.now(UTC),
                amount=expected_amount,
            )
        )
    except PaymentConflictError as exc:
        log.error("redirect_settlement_rejected", error=exc.message, refund_required=True)
        return _fail(order.id, authority, exc.message, public_error="Payment could not be applied to this order")

    current_domain.process(
        ResolvePaymentRequest(
            authority=authority,
            outcome=PaymentRequestStatus.VERIFIED.value,
            ref_id=verification.ref_id,
        ),
        asynchronous=False,
    )
    return CallbackOutcome(order_id=str(order.id), success=True)


def payment_status_view(order):
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "payment_method": order.payment_method,
        "is_paid": bool(order.is_paid),
        "paid_at": order.paid_at,
        "receipt_id": order.payment_result.receipt_id if order.payment_result else None,
        "total_price": order.pricing.total_price,
        "last_payment_error": order.last_payment_error,
    }
