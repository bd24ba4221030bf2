"""Stripe webhook gateway adapter.

Signature verification and payment-intent creation go through the ``stripe``
SDK. ``stripe.Webhook.construct_event`` checks the ``Stripe-Signature``
header (HMAC over ``"<timestamp>.<raw body>"``) and rejects timestamps
outside the tolerance window. The authenticated body is then mapped onto a
``WebhookEvent``.
"""

import json
import time
from datetime import UTC, datetime

import stripe

from ordering.domain import logger
from ordering.payment.gateway.port import PaymentIntentResult, WebhookEvent, WebhookGateway
from ordering.shared.errors import GatewayError, GatewayPayloadError, GatewaySignatureError, GatewayTimeoutError

# Stripe amounts are in the currency's minor unit
MINOR_UNITS = 100


def parse_event(payload: bytes) -> WebhookEvent:
    """Parse a Stripe event body. Only called on authenticated payloads."""
    try:
        body = json.loads(payload)
        data = body.get("data", {}).get("object", {}) or {}
        metadata = data.get("metadata") or {}
        amount = data.get("amount_received", data.get("amount"))
        last_error = data.get("last_payment_error") or {}
        return WebhookEvent(
            event_id=body["id"],
            event_type=body["type"],
            created_at=datetime.fromtimestamp(int(body.get("created", time.time())), tz=UTC),
            order_id=metadata.get("orderId") or metadata.get("order_id"),
            receipt_id=data.get("id"),
            status=data.get("status"),
            amount=amount / MINOR_UNITS if amount is not None else None,
            failure_reason=last_error.get("message"),
        )
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise GatewayPayloadError(f"Unparseable webhook payload: {exc}")


class StripeWebhookGateway(WebhookGateway):
    def __init__(
        self,
        webhook_secret: str,
        tolerance_seconds: int = 300,
        api_key: str | None = None,
        currency: str = "usd",
    ) -> None:
        self.webhook_secret = webhook_secret
        self.tolerance_seconds = tolerance_seconds
        self.api_key = api_key
        self.currency = currency

    def verify_and_parse(self, payload: bytes, signature: str) -> WebhookEvent:
        if not signature:
            raise GatewaySignatureError("Missing signature header")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret, tolerance=self.tolerance_seconds)
        except stripe.SignatureVerificationError as exc:
            raise GatewaySignatureError(f"Signature verification failed: {exc}")
        except ValueError as exc:
            raise GatewayPayloadError(f"Unparseable webhook payload: {exc}")

        return parse_event(payload)

    def create_payment_intent(self, order_id: str, amount: int, metadata: dict | None = None) -> PaymentIntentResult:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=self.currency,
                metadata={"orderId": order_id, **(metadata or {})},
                api_key=self.api_key,
            )
        except stripe.APIConnectionError as exc:
            logger.warning("payment_intent_connection_failed", order_id=order_id, error=str(exc))
            raise GatewayTimeoutError("Payment gateway did not respond in time")
        except stripe.StripeError as exc:
            logger.error("payment_intent_rejected", order_id=order_id, error=str(exc))
            raise GatewayError(f"Payment intent could not be created: {exc}")

        return PaymentIntentResult(intent_id=intent.id, client_secret=intent.client_secret, amount=amount)
