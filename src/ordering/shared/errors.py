"""Error taxonomy for the ordering service.

Input problems are reported with Protean's ``ValidationError`` and missing
aggregates with ``ObjectNotFoundError``. The classes below cover the rest:
authorization failures, state conflicts and gateway trouble. Each carries
the HTTP status it maps to and whether the caller may safely retry.
"""


class OrderingError(Exception):
    status_code = 500
    code = "internal_error"
    retryable = False

    def __init__(self, message: str = "", **details) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details


class GuestTokenError(OrderingError):
    """Missing, malformed, expired or forged guest access token."""

    status_code = 401
    code = "invalid_guest_token"


class AccessDeniedError(OrderingError):
    status_code = 403
    code = "access_denied"


class RateLimitedError(OrderingError):
    status_code = 429
    code = "rate_limited"
    retryable = True


class ConflictError(OrderingError):
    status_code = 409
    code = "conflict"


class InvalidTransitionError(ConflictError):
    code = "invalid_transition"


class PaymentConflictError(ConflictError):
    """A settlement that contradicts the payment facts already recorded."""

    code = "payment_conflict"


class ConcurrentModificationError(ConflictError):
    code = "concurrent_modification"
    retryable = True


class OrderNumberCollisionError(ConflictError):
    code = "order_number_collision"
    retryable = True


class GatewayError(OrderingError):
    status_code = 502
    code = "gateway_error"


class GatewaySignatureError(GatewayError):
    status_code = 400
    code = "invalid_signature"


class GatewayAmountMismatchError(GatewayError):
    code = "amount_mismatch"


class GatewayTimeoutError(GatewayError):
    status_code = 504
    code = "gateway_timeout"
    retryable = True


class GatewayPayloadError(GatewayError):
    """An authenticated gateway message that cannot be understood."""

    status_code = 400
    code = "invalid_payload"
