"""Zarinpal redirect gateway adapter (REST API v4 over httpx).

Amounts are in the gateway's currency unit (IRR). Every call is bounded by
the configured timeout; a timeout is reported as ``GatewayTimeoutError`` so
callers can distinguish "no answer" from "payment declined".
"""

import httpx

from ordering.domain import logger
from ordering.payment.gateway.port import PaymentRequestResult, RedirectGateway, VerificationResult
from ordering.shared.errors import GatewayError, GatewayTimeoutError

PRODUCTION_HOSTS = ("https://api.zarinpal.com", "https://www.zarinpal.com")
SANDBOX_HOSTS = ("https://sandbox.zarinpal.com", "https://sandbox.zarinpal.com")

SUCCESS = 100
ALREADY_VERIFIED = 101

STATUS_MESSAGES = {
    100: "Payment was successful",
    101: "Payment was successful but already verified",
    -1: "Invalid information provided",
    -2: "Merchant ID is invalid",
    -3: "Amount is too low (minimum 1000 IRR)",
    -4: "Amount is higher than the allowed limit",
    -11: "Payment request record not found",
    -12: "Transaction failed",
    -21: "Transaction canceled by user",
    -22: "Transaction failed (unknown error)",
    -33: "Transaction amount does not match with the payment amount",
    -34: "Transaction has already been divided into smaller parts",
    -40: "Payment session has expired",
    -41: "Payment request information does not match with the payment",
    -42: "Your payment initiation request has been previously processed",
    -54: "The reference transaction for this transaction was not found or has been settled",
}


def status_message(code) -> str:
    try:
        return STATUS_MESSAGES.get(int(code), "Unknown status code")
    except (TypeError, ValueError):
        return "Unknown status code"


class ZarinpalGateway(RedirectGateway):
    def __init__(self, merchant_id: str, sandbox: bool = True, timeout: float = 10.0, transport=None) -> None:
        self.merchant_id = merchant_id
        self.timeout = timeout
        self.transport = transport
        api_host, web_host = SANDBOX_HOSTS if sandbox else PRODUCTION_HOSTS
        self.request_url = f"{api_host}/pg/v4/payment/request.json"
        self.verify_url = f"{api_host}/pg/v4/payment/verify.json"
        self.start_pay_url = f"{web_host}/pg/StartPay/"

    def _post(self, url: str, body: dict) -> dict:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=body, headers={"Accept": "application/json"})
        except httpx.TimeoutException as exc:
            logger.error("redirect_gateway_timeout", url=url, error=str(exc))
            raise GatewayTimeoutError("Payment gateway did not respond in time")
        except httpx.HTTPError as exc:
            logger.error("redirect_gateway_unreachable", url=url, error=str(exc))
            raise GatewayError("Payment gateway is unreachable")

        try:
            payload = response.json()
        except ValueError:
            logger.error("redirect_gateway_bad_response", url=url, status_code=response.status_code)
            raise GatewayError("Payment gateway returned an unreadable response")

        # v4 reports failures under "errors" with "data" empty
        data = payload.get("data") or {}
        errors = payload.get("errors") or {}
        if not data and isinstance(errors, dict) and "code" in errors:
            return {"code": errors["code"], "message": errors.get("message")}
        return data

    def payment_url(self, authority: str) -> str:
        return f"{self.start_pay_url}{authority}"

    def request_payment(
        self,
        amount: int,
        description: str,
        callback_url: str,
        email: str | None = None,
        mobile: str | None = None,
        order_id: str | None = None,
    ) -> PaymentRequestResult:
        metadata = {key: value for key, value in {"email": email, "mobile": mobile, "order_id": order_id}.items() if value}
        data = self._post(
            self.request_url,
            {
                "merchant_id": self.merchant_id,
                "amount": amount,
                "description": description,
                "callback_url": callback_url,
                "metadata": metadata,
            },
        )

        code = data.get("code")
        if code != SUCCESS or not data.get("authority"):
            logger.error("redirect_payment_request_rejected", code=code, message=status_message(code))
            raise GatewayError(status_message(code), code=code)

        authority = data["authority"]
        logger.info("redirect_payment_requested", authority=authority, amount=amount)
        return PaymentRequestResult(authority=authority, payment_url=self.payment_url(authority))

    def verify_payment(self, authority: str, amount: int) -> VerificationResult:
        data = self._post(
            self.verify_url,
            {"merchant_id": self.merchant_id, "amount": amount, "authority": authority},
        )

        try:
            code = int(data.get("code"))
        except (TypeError, ValueError):
            raise GatewayError("Payment gateway returned no status code")

        ref_id = data.get("ref_id")
        return VerificationResult(
            code=code,
            success=code in (SUCCESS, ALREADY_VERIFIED),
            message=status_message(code),
            ref_id=str(ref_id) if ref_id is not None else None,
            card_pan=data.get("card_pan"),
        )
