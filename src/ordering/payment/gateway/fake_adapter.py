"""Configurable fake payment gateways for development and testing.

These adapters simulate both gateways without any external calls. They can
be configured at runtime to succeed, fail or time out, and they record every
call for assertions.
"""

from uuid import uuid4

from ordering.payment.gateway.port import (
    PaymentIntentResult,
    PaymentRequestResult,
    RedirectGateway,
    VerificationResult,
    WebhookEvent,
    WebhookGateway,
)
from ordering.payment.gateway.stripe_adapter import parse_event
from ordering.payment.gateway.zarinpal_adapter import SUCCESS, status_message
from ordering.shared.errors import GatewayError, GatewaySignatureError, GatewayTimeoutError

VALID_SIGNATURE = "test-signature"


class FakeWebhookGateway(WebhookGateway):
    """Accepts any Stripe-shaped payload signed with ``test-signature``."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.intent_fails: bool = False

    def verify_and_parse(self, payload: bytes, signature: str) -> WebhookEvent:
        self.calls.append({"method": "verify_and_parse", "signature": signature})
        if signature != VALID_SIGNATURE:
            raise GatewaySignatureError("Signature does not match payload")
        return parse_event(payload)

    def create_payment_intent(self, order_id: str, amount: int, metadata: dict | None = None) -> PaymentIntentResult:
        self.calls.append(
            {"method": "create_payment_intent", "order_id": order_id, "amount": amount, "metadata": metadata}
        )
        if self.intent_fails:
            raise GatewayError("Payment intent could not be created")

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        client_secret = f"{intent_id}_secret_{uuid4().hex[:8]}"
        return PaymentIntentResult(intent_id=intent_id, client_secret=client_secret, amount=amount)


class FakeRedirectGateway(RedirectGateway):
    """Redirect gateway that approves or declines verifications as configured."""

    def __init__(self) -> None:
        self.verify_code: int = SUCCESS
        self.reported_amount: int | None = None
        self.request_fails: bool = False
        self.timeout: bool = False
        self.calls: list[dict] = []

    def configure(
        self,
        verify_code: int = SUCCESS,
        reported_amount: int | None = None,
        request_fails: bool = False,
        timeout: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime.

        ``reported_amount`` makes verification echo back a specific amount,
        simulating a gateway that settled a different sum.
        """
        self.verify_code = verify_code
        self.reported_amount = reported_amount
        self.request_fails = request_fails
        self.timeout = timeout

    def payment_url(self, authority: str) -> str:
        return f"https://sandbox.gateway.test/StartPay/{authority}"

    def request_payment(
        self,
        amount: int,
        description: str,
        callback_url: str,
        email: str | None = None,
        mobile: str | None = None,
        order_id: str | None = None,
    ) -> PaymentRequestResult:
        self.calls.append(
            {
                "method": "request_payment",
                "amount": amount,
                "description": description,
                "callback_url": callback_url,
                "order_id": order_id,
            }
        )
        if self.timeout:
            raise GatewayTimeoutError("Payment gateway did not respond in time")
        if self.request_fails:
            raise GatewayError(status_message(-12), code=-12)

        authority = f"A{uuid4().hex[:35].upper()}"
        return PaymentRequestResult(authority=authority, payment_url=self.payment_url(authority))

    def verify_payment(self, authority: str, amount: int) -> VerificationResult:
        self.calls.append({"method": "verify_payment", "authority": authority, "amount": amount})
        if self.timeout:
            raise GatewayTimeoutError("Payment gateway did not respond in time")

        success = self.verify_code in (100, 101)
        return VerificationResult(
            code=self.verify_code,
            success=success,
            message=status_message(self.verify_code),
            ref_id=f"fake_ref_{uuid4().hex[:10]}" if success else None,
            amount=self.reported_amount,
        )
