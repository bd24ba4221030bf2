"""FastAPI routes for the Ordering domain: orders, carts and payments."""

import json

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.api.dependencies import get_principal
from ordering.api.schemas import (
    AddToCartRequest,
    AttachTrackingRequest,
    BulkStatusRequest,
    BulkStatusResponse,
    BulkStatusResult,
    CancelOrderRequest,
    CartIdResponse,
    CartMergeResponse,
    ChangedResponse,
    GuestVerifyRequest,
    GuestVerifyResponse,
    MergeCartRequest,
    OrderPageResponse,
    OrderResponse,
    OrderSummaryResponse,
    PaymentIntentRequest,
    PaymentIntentResponse,
    PaymentOverrideRequest,
    PaymentStatusResponse,
    PlaceOrderRequest,
    PlaceOrderResponse,
    RedirectPayRequest,
    RedirectPayResponse,
    ShippingOptionRequest,
    TrackingResponse,
    TrackingValidateRequest,
    TrackingValidateResponse,
    UpdateStatusRequest,
    WebhookAckResponse,
)
from ordering.cart.conversion import convert_cart_after_checkout
from ordering.cart.items import AddToCart
from ordering.cart.merge import CartMergeResult, merge_on_login
from ordering.config import get_settings
from ordering.domain import logger
from ordering.guest.access import issue_guest_token, token_lifetime_seconds
from ordering.guest.verification import verify_guest_order
from ordering.order.access import Principal, authorize_purchaser, require_admin
from ordering.order.bulk import bulk_update_status
from ordering.order.cancellation import CancelOrder
from ordering.order.creation import PlaceOrder
from ordering.order.fulfillment import AdvanceOrderStatus, AttachTrackingNumber, ChangeShippingOption
from ordering.order.order import Order
from ordering.order.payment import OverridePaymentStatus
from ordering.order.queries import find_by_tracking_code, list_orders, orders_for_customer, public_tracking_view
from ordering.payment.redirect import (
    CallbackOutcome,
    handle_redirect_callback,
    initiate_redirect_payment,
    payment_status_view,
)
from ordering.payment.webhook import initiate_webhook_payment, process_webhook
from ordering.shared.concurrency import process_with_retry
from ordering.shared.errors import AccessDeniedError, GatewayPayloadError, GatewaySignatureError
from ordering.shared.identifiers import is_valid_tracking_code


def _load_order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _changed(order_id, changed) -> ChangedResponse:
    order = _load_order(order_id)
    return ChangedResponse(order_id=str(order.id), changed=bool(changed), status=order.status)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=PlaceOrderResponse)
async def place_order(body: PlaceOrderRequest, principal: Principal = Depends(get_principal)) -> PlaceOrderResponse:
    """Place an order for a signed-in customer or a guest."""
    if principal.is_authenticated:
        customer_id, guest_contact = principal.user_id, None
    elif body.guest_contact is None:
        raise ValidationError({"guest_contact": ["Guest checkout requires an email address and phone number"]})
    else:
        customer_id, guest_contact = None, body.guest_contact.model_dump()

    command = PlaceOrder(
        customer_id=customer_id,
        guest_contact=json.dumps(guest_contact) if guest_contact else None,
        items=json.dumps([line.model_dump() for line in body.items]),
        shipping_address=json.dumps(body.shipping_address.model_dump(exclude_none=True)),
        shipping_option=body.shipping_option,
        payment_method=body.payment_method,
        promo_code=body.promo_code,
        notes=body.notes,
    )
    order_id = current_domain.process(command, asynchronous=False)
    convert_cart_after_checkout(order_id, customer_id=customer_id, session_id=body.session_id)

    order = _load_order(order_id)
    return PlaceOrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        tracking_code=order.tracking_code,
        total_price=order.pricing.total_price,
        guest_access_token=issue_guest_token(order.id, guest_contact) if guest_contact else None,
    )


@order_router.get("", response_model=OrderPageResponse)
async def list_all_orders(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    principal: Principal = Depends(get_principal),
) -> OrderPageResponse:
    """Back-office order listing, newest first."""
    require_admin(principal)
    listing = list_orders(status=status, page=page, limit=limit)
    data = [OrderSummaryResponse.from_order(order) for order in listing["orders"]]
    return OrderPageResponse(
        results=len(data),
        total=listing["total"],
        total_pages=listing["total_pages"],
        current_page=listing["current_page"],
        data=data,
    )


@order_router.get("/user", response_model=list[OrderSummaryResponse])
async def list_my_orders(principal: Principal = Depends(get_principal)) -> list[OrderSummaryResponse]:
    """The signed-in customer's orders, newest first."""
    if not principal.is_authenticated:
        raise AccessDeniedError("Sign in to list your orders")
    return [OrderSummaryResponse.from_order(order) for order in orders_for_customer(principal.user_id)]


@order_router.post("/track/validate", response_model=TrackingValidateResponse)
async def validate_tracking_code(body: TrackingValidateRequest) -> TrackingValidateResponse:
    code = body.tracking_code.strip().upper()
    return TrackingValidateResponse(tracking_code=code, is_valid=is_valid_tracking_code(code))


@order_router.get("/track/{tracking_code}", response_model=TrackingResponse)
async def track_order(tracking_code: str) -> TrackingResponse:
    """Public order tracking by tracking code."""
    code = tracking_code.strip().upper()
    if not is_valid_tracking_code(code):
        raise ValidationError({"tracking_code": ["Invalid tracking code format"]})

    order = find_by_tracking_code(code)
    if order is None:
        raise ObjectNotFoundError("Order not found")
    return TrackingResponse(**public_tracking_view(order))


@order_router.post("/guest/verify", response_model=GuestVerifyResponse)
async def verify_guest(body: GuestVerifyRequest) -> GuestVerifyResponse:
    """Exchange the email used at checkout and an order id for a guest access token."""
    token = verify_guest_order(body.email, body.order_id)
    return GuestVerifyResponse(access_token=token, expires_in=token_lifetime_seconds(), order_id=body.order_id)


@order_router.put("/bulk-status-update", response_model=BulkStatusResponse)
async def bulk_status_update(
    body: BulkStatusRequest, principal: Principal = Depends(get_principal)
) -> BulkStatusResponse:
    require_admin(principal)
    results = [BulkStatusResult(**result) for result in bulk_update_status(body.order_ids, body.status, body.reason)]
    succeeded = sum(1 for result in results if result.success)
    return BulkStatusResponse(results=results, succeeded=succeeded, failed=len(results) - succeeded)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, principal: Principal = Depends(get_principal)) -> OrderResponse:
    order = _load_order(order_id)
    authorize_purchaser(order, principal)
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/status", response_model=ChangedResponse)
async def update_order_status(
    order_id: str, body: UpdateStatusRequest, principal: Principal = Depends(get_principal)
) -> ChangedResponse:
    require_admin(principal)
    changed = process_with_retry(AdvanceOrderStatus(order_id=order_id, status=body.status, reason=body.reason))
    return _changed(order_id, changed)


@order_router.post("/{order_id}/cancel", response_model=ChangedResponse)
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    principal: Principal = Depends(get_principal),
) -> ChangedResponse:
    """Cancel an order and return its items to stock."""
    authorize_purchaser(_load_order(order_id), principal)
    changed = process_with_retry(
        CancelOrder(order_id=order_id, cancelled_by=principal.actor, reason=body.reason if body else None)
    )
    return _changed(order_id, changed)


@order_router.put("/{order_id}/payment", response_model=ChangedResponse)
async def override_payment(
    order_id: str, body: PaymentOverrideRequest, principal: Principal = Depends(get_principal)
) -> ChangedResponse:
    require_admin(principal)
    changed = process_with_retry(
        OverridePaymentStatus(
            order_id=order_id,
            is_paid=body.is_paid,
            actor_id=principal.user_id,
            receipt_id=body.receipt_id,
        )
    )
    return _changed(order_id, changed)


@order_router.put("/{order_id}/tracking", response_model=ChangedResponse)
async def attach_tracking_number(
    order_id: str, body: AttachTrackingRequest, principal: Principal = Depends(get_principal)
) -> ChangedResponse:
    require_admin(principal)
    process_with_retry(AttachTrackingNumber(order_id=order_id, tracking_number=body.tracking_number, notes=body.notes))
    return _changed(order_id, True)


@order_router.put("/{order_id}/shipping-option", response_model=ChangedResponse)
async def change_shipping_option(
    order_id: str, body: ShippingOptionRequest, principal: Principal = Depends(get_principal)
) -> ChangedResponse:
    require_admin(principal)
    changed = process_with_retry(ChangeShippingOption(order_id=order_id, shipping_option=body.shipping_option))
    return _changed(order_id, changed)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook", response_model=WebhookAckResponse)
async def receive_webhook(request: Request, stripe_signature: str = Header(default="")):
    """Webhook gateway deliveries. The raw body is needed to check the signature."""
    payload = await request.body()
    try:
        ack = process_webhook(payload, stripe_signature)
    except (GatewaySignatureError, GatewayPayloadError) as exc:
        logger.warning("webhook_rejected", error=exc.message)
        raise HTTPException(status_code=400, detail="Webhook signature verification failed")
    except Exception:
        logger.error("webhook_processing_failed", exc_info=True)
        return JSONResponse(status_code=500, content={"received": False, "error": "Webhook processing failed"})
    return WebhookAckResponse(received=ack.received, outcome=ack.outcome)


@payment_router.post("/webhook-gateway/intent", response_model=PaymentIntentResponse)
async def start_webhook_payment(
    body: PaymentIntentRequest, principal: Principal = Depends(get_principal)
) -> PaymentIntentResponse:
    """Open a payment intent; the client confirms it and the gateway reports back by webhook."""
    order = _load_order(body.order_id)
    authorize_purchaser(order, principal)
    intent = initiate_webhook_payment(order)
    return PaymentIntentResponse(
        order_id=str(order.id),
        intent_id=intent.intent_id,
        client_secret=intent.client_secret,
        amount=intent.amount,
    )


@payment_router.post("/redirect-gateway/pay", response_model=RedirectPayResponse)
async def start_redirect_payment(
    body: RedirectPayRequest, principal: Principal = Depends(get_principal)
) -> RedirectPayResponse:
    """Open a payment session and hand back the gateway URL to send the customer to."""
    order = _load_order(body.order_id)
    authorize_purchaser(order, principal)
    result = initiate_redirect_payment(order)
    return RedirectPayResponse(order_id=str(order.id), authority=result.authority, payment_url=result.payment_url)


@payment_router.get("/redirect-gateway/callback")
async def redirect_callback(
    authority: str | None = Query(default=None, alias="Authority"),
    status: str | None = Query(default=None, alias="Status"),
    order_id: str | None = Query(default=None, alias="orderId"),
) -> RedirectResponse:
    """Where the gateway sends the customer's browser back to."""
    settings = get_settings()
    try:
        outcome = handle_redirect_callback(authority, status, order_id, settings=settings)
    except (ValidationError, ObjectNotFoundError):
        raise
    except Exception:
        logger.error("redirect_callback_failed", order_id=order_id, authority=authority, exc_info=True)
        outcome = CallbackOutcome(order_id=order_id or "", success=False, error="Payment verification failed")
    return RedirectResponse(outcome.redirect_url(settings.frontend_url), status_code=302)


@payment_router.get("/redirect-gateway/status/{order_id}", response_model=PaymentStatusResponse)
async def redirect_payment_status(
    order_id: str, principal: Principal = Depends(get_principal)
) -> PaymentStatusResponse:
    order = _load_order(order_id)
    authorize_purchaser(order, principal)
    return PaymentStatusResponse(**payment_status_view(order))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("/items", response_model=CartIdResponse)
async def add_cart_item(body: AddToCartRequest, principal: Principal = Depends(get_principal)) -> CartIdResponse:
    if not principal.is_authenticated and not body.session_id:
        raise ValidationError({"session_id": ["A session id is required for anonymous carts"]})

    command = AddToCart(
        customer_id=principal.user_id if principal.is_authenticated else None,
        session_id=None if principal.is_authenticated else body.session_id,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    cart_id = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=cart_id)


@cart_router.post("/merge", response_model=CartMergeResponse)
async def merge_cart(body: MergeCartRequest, principal: Principal = Depends(get_principal)) -> CartMergeResponse:
    """Fold an anonymous session cart into the signed-in customer's cart."""
    if not principal.is_authenticated:
        raise AccessDeniedError("Sign in to merge a cart")

    result = merge_on_login(principal.user_id, body.session_id)
    if result is None:
        result = CartMergeResult(success=True, message="No guest cart to merge")
    return CartMergeResponse(**result.to_dict())
