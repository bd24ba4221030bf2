"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from ordering.shared.address import normalize_address


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    """Shipping address. Legacy field names (``fullName``, ``address``,
    ``province``, ``zipCode`` ...) are accepted and mapped onto these."""

    full_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: str | None = None
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str | None = None
    postal_code: str | None = None
    country: str = "IR"
    additional_info: str | None = None

    @model_validator(mode="before")
    @classmethod
    def map_legacy_fields(cls, data):
        if isinstance(data, dict):
            return normalize_address(data)
        return data


class GuestContactSchema(BaseModel):
    email: str
    phone: str


class OrderLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[OrderLineSchema] = Field(min_length=1)
    shipping_address: AddressSchema
    payment_method: str
    shipping_option: str = "standard"
    promo_code: str | None = None
    notes: str | None = None
    guest_contact: GuestContactSchema | None = None
    session_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address": {
                        "full_name": "Sara Ahmadi",
                        "phone": "09120000000",
                        "street": "12 Valiasr St",
                        "city": "Tehran",
                        "postal_code": "1234567890",
                    },
                    "payment_method": "redirect_gateway",
                    "shipping_option": "express",
                    "guest_contact": {"email": "sara@example.com", "phone": "09120000000"},
                }
            ]
        }
    }


class UpdateStatusRequest(BaseModel):
    status: str
    reason: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class PaymentOverrideRequest(BaseModel):
    is_paid: bool
    receipt_id: str | None = None


class AttachTrackingRequest(BaseModel):
    tracking_number: str = Field(min_length=1)
    notes: str | None = None


class ShippingOptionRequest(BaseModel):
    shipping_option: str


class GuestVerifyRequest(BaseModel):
    email: str = Field(min_length=3)
    order_id: str = Field(min_length=1)


class BulkStatusRequest(BaseModel):
    order_ids: list[str] = Field(min_length=1)
    status: str
    reason: str | None = None


# ---------------------------------------------------------------------------
# Order Response Schemas
# ---------------------------------------------------------------------------
class PlaceOrderResponse(BaseModel):
    order_id: str
    order_number: str
    tracking_code: str
    total_price: float
    guest_access_token: str | None = None


class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    price: float
    image_url: str | None = None
    quantity: int


class PricingResponse(BaseModel):
    items_price: float
    discount_amount: float
    tax_price: float
    shipping_price: float
    total_price: float


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    tracking_code: str
    customer_id: str | None = None
    guest_email: str | None = None
    status: str
    items: list[OrderItemResponse]
    shipping_address: dict
    shipping_option: str
    estimated_delivery_date: date | None = None
    payment_method: str
    pricing: PricingResponse
    promo_code: str | None = None
    is_paid: bool
    paid_at: datetime | None = None
    last_payment_error: str | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    carrier_tracking_number: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            tracking_code=order.tracking_code,
            customer_id=str(order.customer_id) if order.customer_id else None,
            guest_email=order.guest_contact.email if order.guest_contact else None,
            status=order.status,
            items=[
                OrderItemResponse(
                    product_id=str(item.product_id),
                    name=item.name,
                    price=item.price,
                    image_url=item.image_url,
                    quantity=item.quantity,
                )
                for item in order.items
            ],
            shipping_address=order.shipping_address.to_dict() if order.shipping_address else {},
            shipping_option=order.shipping_option,
            estimated_delivery_date=order.estimated_delivery_date,
            payment_method=order.payment_method,
            pricing=PricingResponse(**order.pricing.to_dict()),
            promo_code=order.promo_code,
            is_paid=bool(order.is_paid),
            paid_at=order.paid_at,
            last_payment_error=order.last_payment_error,
            is_delivered=bool(order.is_delivered),
            delivered_at=order.delivered_at,
            carrier_tracking_number=order.carrier_tracking_number,
            cancellation_reason=order.cancellation_reason,
            cancelled_by=order.cancelled_by,
            cancelled_at=order.cancelled_at,
            created_at=order.created_at,
        )


class TrackingMilestone(BaseModel):
    stage: str
    title: str
    date: datetime | None = None
    completed: bool


class TrackingResponse(BaseModel):
    tracking_code: str
    order_number: str
    status: str
    status_message: str
    shipping_option: str
    estimated_delivery_date: date | None = None
    carrier_tracking_number: str | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    created_at: datetime | None = None
    milestones: list[TrackingMilestone] = []


class TrackingValidateRequest(BaseModel):
    tracking_code: str


class TrackingValidateResponse(BaseModel):
    tracking_code: str
    is_valid: bool


class OrderSummaryResponse(BaseModel):
    order_id: str
    order_number: str
    tracking_code: str
    status: str
    total_price: float
    item_count: int
    is_paid: bool
    is_delivered: bool
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderSummaryResponse":
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            tracking_code=order.tracking_code,
            status=order.status,
            total_price=order.pricing.total_price,
            item_count=sum(item.quantity for item in order.items),
            is_paid=bool(order.is_paid),
            is_delivered=bool(order.is_delivered),
            created_at=order.created_at,
        )


class OrderPageResponse(BaseModel):
    results: int
    total: int
    total_pages: int
    current_page: int
    data: list[OrderSummaryResponse]

class GuestVerifyResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    order_id: str


class BulkStatusResult(BaseModel):
    order_id: str
    success: bool
    status: str | None = None
    error: str | None = None


class BulkStatusResponse(BaseModel):
    results: list[BulkStatusResult]
    succeeded: int
    failed: int


class ChangedResponse(BaseModel):
    order_id: str
    changed: bool
    status: str


# ---------------------------------------------------------------------------
# Payment Schemas
# ---------------------------------------------------------------------------
class WebhookAckResponse(BaseModel):
    received: bool
    outcome: str


class PaymentIntentRequest(BaseModel):
    order_id: str


class PaymentIntentResponse(BaseModel):
    order_id: str
    intent_id: str
    client_secret: str
    amount: int


class RedirectPayRequest(BaseModel):
    order_id: str


class RedirectPayResponse(BaseModel):
    order_id: str
    authority: str
    payment_url: str


class PaymentStatusResponse(BaseModel):
    order_id: str
    order_number: str
    payment_method: str
    is_paid: bool
    paid_at: datetime | None = None
    receipt_id: str | None = None
    total_price: float
    last_payment_error: str | None = None


# ---------------------------------------------------------------------------
# Cart Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    session_id: str | None = None


class CartIdResponse(BaseModel):
    cart_id: str


class MergeCartRequest(BaseModel):
    session_id: str


class CartMergeResponse(BaseModel):
    success: bool
    message: str
    item_count: int = 0
