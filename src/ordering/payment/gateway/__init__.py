"""Payment gateway factory.

Provides get_*_gateway() / set_*_gateway() to swap implementations:
- StripeWebhookGateway and ZarinpalGateway, built from settings, by default
- FakeWebhookGateway and FakeRedirectGateway for testing
"""

from ordering.config import get_settings
from ordering.payment.gateway.port import RedirectGateway, WebhookGateway
from ordering.payment.gateway.stripe_adapter import StripeWebhookGateway
from ordering.payment.gateway.zarinpal_adapter import ZarinpalGateway

_webhook_gateway: WebhookGateway | None = None
_redirect_gateway: RedirectGateway | None = None


def get_webhook_gateway() -> WebhookGateway:
    """Return the current webhook gateway."""
    global _webhook_gateway
    if _webhook_gateway is None:
        settings = get_settings()
        _webhook_gateway = StripeWebhookGateway(
            webhook_secret=settings.webhook_secret,
            tolerance_seconds=settings.webhook_tolerance_seconds,
            api_key=settings.webhook_api_key,
            currency=settings.webhook_currency,
        )
    return _webhook_gateway


def set_webhook_gateway(gateway: WebhookGateway) -> None:
    """Override the active webhook gateway (useful for tests)."""
    global _webhook_gateway
    _webhook_gateway = gateway


def get_redirect_gateway() -> RedirectGateway:
    """Return the current redirect gateway."""
    global _redirect_gateway
    if _redirect_gateway is None:
        settings = get_settings()
        _redirect_gateway = ZarinpalGateway(
            merchant_id=settings.redirect_merchant_id,
            sandbox=settings.redirect_sandbox,
            timeout=settings.redirect_timeout_seconds,
        )
    return _redirect_gateway


def set_redirect_gateway(gateway: RedirectGateway) -> None:
    """Override the active redirect gateway (useful for tests)."""
    global _redirect_gateway
    _redirect_gateway = gateway


def reset_gateways() -> None:
    """Reset both gateways to their defaults."""
    global _webhook_gateway, _redirect_gateway
    _webhook_gateway = None
    _redirect_gateway = None
