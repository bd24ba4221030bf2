"""Payment gateway ports (abstract interfaces).

Two gateways confirm payments in structurally different ways:

* The webhook gateway pushes signed event notifications to us.
* The redirect gateway sends the customer back to a callback URL with an
  authority token, and we must verify the payment server-to-server.

Adapters implement these ports; the reconciliation layer never talks to a
payment provider directly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WebhookEvent:
    """A verified, parsed notification from the webhook gateway."""

    event_id: str
    event_type: str
    created_at: datetime
    order_id: str | None = None
    receipt_id: str | None = None
    status: str | None = None
    amount: float | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class PaymentIntentResult:
    """A payment intent opened with the webhook gateway; the client confirms it."""

    intent_id: str
    client_secret: str
    amount: int


@dataclass(frozen=True)
class PaymentRequestResult:
    authority: str
    payment_url: str


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a server-to-server verification of a redirect payment."""

    code: int
    success: bool
    message: str
    ref_id: str | None = None
    amount: int | None = None  # Echoed amount, when the gateway reports one
    card_pan: str | None = None


class WebhookGateway(ABC):
    name = "webhook_gateway"

    @abstractmethod
    def verify_and_parse(self, payload: bytes, signature: str) -> WebhookEvent:
        """Authenticate ``payload`` against ``signature`` and parse it.

        Raises ``GatewaySignatureError`` before looking at the payload when
        the signature does not verify.
        """
        ...

    @abstractmethod
    def create_payment_intent(self, order_id: str, amount: int, metadata: dict | None = None) -> PaymentIntentResult:
        """Open a payment intent for ``amount`` (minor units) tagged with the order id."""
        ...


class RedirectGateway(ABC):
    name = "redirect_gateway"

    @abstractmethod
    def request_payment(
        self,
        amount: int,
        description: str,
        callback_url: str,
        email: str | None = None,
        mobile: str | None = None,
        order_id: str | None = None,
    ) -> PaymentRequestResult:
        """Open a payment session and return its authority token."""
        ...

    @abstractmethod
    def verify_payment(self, authority: str, amount: int) -> VerificationResult:
        """Ask the gateway whether ``authority`` was paid for ``amount``.

        Raises ``GatewayTimeoutError`` when the gateway does not answer in
        time and ``GatewayError`` for any other transport failure.
        """
        ...
