"""Order aggregate (CQRS) — the core of the ordering domain.

One Order document per purchase. Line items carry a snapshot of the product
name, price and image taken at checkout, so later catalogue changes never
alter an existing order. Pricing is computed once at placement.

State Machine:
    pending → processing → shipped → delivered
    pending / processing → cancelled

``is_paid`` is orthogonal to ``status``: a cash-on-delivery order can ship
unpaid, and a gateway settlement on a pending order moves it to processing.
Every write goes through a versioned save, so two writers that loaded the
same version cannot both succeed.
"""

import json
import re
from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    Date,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderPaid,
    OrderPaymentFailed,
    OrderPaymentReverted,
    OrderPlaced,
    OrderProcessing,
    OrderShipped,
    ShippingOptionChanged,
    TrackingNumberAttached,
)
from ordering.shared import identifiers
from ordering.shared.errors import InvalidTransitionError, PaymentConflictError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ShippingOption(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    SAME_DAY = "same_day"


class PaymentMethod(Enum):
    WEBHOOK_GATEWAY = "webhook_gateway"
    REDIRECT_GATEWAY = "redirect_gateway"
    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"


class CancellationActor(Enum):
    CUSTOMER = "customer"
    GUEST = "guest"
    ADMIN = "admin"
    SYSTEM = "system"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

_DELIVERY_DAYS = {
    ShippingOption.STANDARD: 5,
    ShippingOption.EXPRESS: 2,
    ShippingOption.SAME_DAY: 0,
}

_EMAIL_PATTERN = re.compile(r"^[^@\s;,<>]+@[^@\s;,<>]+\.[^@\s;,<>]+$")


def estimate_delivery(shipping_option, from_date):
    return from_date + timedelta(days=_DELIVERY_DAYS[ShippingOption(shipping_option)])


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class GuestContact:
    """Contact details of a purchaser without an account."""

    email: String(required=True, max_length=254)
    phone: String(required=True, max_length=20)

    @invariant.post
    def email_must_be_well_formed(self):
        if not _EMAIL_PATTERN.match(self.email or ""):
            raise ValidationError({"email": [f"Invalid email address: {self.email!r}"]})


@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, captured at checkout and never changed afterwards."""

    full_name = String(required=True, max_length=200)
    phone = String(required=True, max_length=20)
    email = String(max_length=254)
    street = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100, default="IR")
    additional_info = String(max_length=500)


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Financial summary of an order, locked at checkout."""

    items_price = Float(default=0.0)
    discount_amount = Float(default=0.0)
    tax_price = Float(default=0.0)
    shipping_price = Float(default=0.0)
    total_price = Float(default=0.0)


@ordering.value_object(part_of="Order")
class PaymentReceipt:
    """Settlement receipt reported by a payment gateway (or entered by an admin)."""

    receipt_id = String(required=True, max_length=255)
    status = String(required=True, max_length=50)
    gateway = String(required=True, max_length=50)
    settled_at = DateTime(required=True)
    amount = Float()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A purchased product with the name, price and image it had at checkout."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    image_url = String(max_length=500)
    quantity = Integer(required=True, min_value=1)

    @property
    def line_total(self):
        return self.price * self.quantity


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    customer_id = Identifier()  # Empty for guest orders
    guest_contact = ValueObject(GuestContact)
    order_number = String(required=True, max_length=20, unique=True)
    tracking_code = String(required=True, max_length=30, unique=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    shipping_option = String(choices=ShippingOption, default=ShippingOption.STANDARD.value)
    estimated_delivery_date = Date()
    payment_method = String(choices=PaymentMethod, required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    pricing = ValueObject(OrderPricing)
    promo_code = String(max_length=50)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    payment_result = ValueObject(PaymentReceipt)
    last_payment_error = String(max_length=500)
    is_delivered = Boolean(default=False)
    delivered_at = DateTime()
    carrier_tracking_number = String(max_length=100)
    notes = String(max_length=1000)
    stock_restored = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(choices=CancellationActor)
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def order_must_have_exactly_one_owner(self):
        if bool(self.customer_id) == (self.guest_contact is not None):
            raise ValidationError({"owner": ["An order belongs to either a customer or a guest, never both or neither"]})

    @invariant.post
    def order_must_have_items(self):
        if not self.items:
            raise ValidationError({"items": ["An order must contain at least one item"]})

    @invariant.post
    def delivered_order_must_record_delivery(self):
        if self.status == OrderStatus.DELIVERED.value and not (self.is_delivered and self.delivered_at):
            raise ValidationError({"status": ["A delivered order must record when it was delivered"]})

    @invariant.post
    def paid_order_must_carry_receipt(self):
        if self.is_paid and not (self.paid_at and self.payment_result):
            raise ValidationError({"is_paid": ["A paid order must carry its settlement receipt"]})

    @invariant.post
    def cancelled_order_must_have_restored_stock(self):
        if self.status == OrderStatus.CANCELLED.value and not self.stock_restored:
            raise ValidationError({"status": ["A cancelled order must have its stock restored"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        items_data,
        shipping_address,
        payment_method,
        pricing,
        customer_id=None,
        guest_contact=None,
        shipping_option=ShippingOption.STANDARD.value,
        promo_code=None,
        notes=None,
    ):
        """Create a new pending order from checkout data.

        Args:
            items_data: List of dicts with product_id, name, price, image_url, quantity.
            shipping_address: Dict of canonical shipping address fields.
            payment_method: One of ``PaymentMethod`` values.
            pricing: ``PriceBreakdown`` computed from the item snapshot.
            customer_id: Owner of the order, or None for a guest order.
            guest_contact: Dict with email and phone for a guest order.
        """
        if not items_data:
            raise ValidationError({"items": ["An order must contain at least one item"]})
        if not shipping_address:
            raise ValidationError({"shipping_address": ["A shipping address is required"]})
        if payment_method not in {method.value for method in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unsupported payment method {payment_method!r}"]})
        if shipping_option not in {option.value for option in ShippingOption}:
            raise ValidationError({"shipping_option": [f"Unsupported shipping option {shipping_option!r}"]})

        now = datetime.now(UTC)
        order_id = str(uuid4())

        order = cls(
            id=order_id,
            customer_id=customer_id,
            guest_contact=GuestContact(**guest_contact) if guest_contact else None,
            order_number=identifiers.generate_order_number(now.date()),
            tracking_code=identifiers.generate_tracking_code(order_id, now.date()),
            items=[OrderItem(**item) for item in items_data],
            shipping_address=ShippingAddress(**shipping_address),
            shipping_option=shipping_option,
            estimated_delivery_date=estimate_delivery(shipping_option, now.date()),
            payment_method=payment_method,
            status=OrderStatus.PENDING.value,
            pricing=OrderPricing(
                items_price=pricing.items_price,
                discount_amount=pricing.discount_amount,
                tax_price=pricing.tax_price,
                shipping_price=pricing.shipping_price,
                total_price=pricing.total_price,
            ),
            promo_code=promo_code,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=order_id,
                order_number=order.order_number,
                tracking_code=order.tracking_code,
                customer_id=str(customer_id) if customer_id else None,
                guest_email=order.guest_contact.email if order.guest_contact else None,
                items=json.dumps(items_data),
                payment_method=payment_method,
                shipping_option=shipping_option,
                total_price=order.pricing.total_price,
                estimated_delivery_date=order.estimated_delivery_date,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_guest_order(self):
        return not self.customer_id

    def owned_by(self, customer_id):
        return bool(customer_id) and str(self.customer_id) == str(customer_id)

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Cannot transition from {current.value} to {target_status.value}",
                order_id=str(self.id),
                current=current.value,
                target=target_status.value,
            )

    def advance(self, target_status):
        """Move to ``target_status`` along the forward path.

        Returns False when the order already is in ``target_status``.
        Cancellation is not handled here; see ``cancel``.
        """
        target = OrderStatus(target_status)
        if target == OrderStatus(self.status):
            return False

        if target == OrderStatus.PROCESSING:
            self.start_processing()
        elif target == OrderStatus.SHIPPED:
            self.ship()
        elif target == OrderStatus.DELIVERED:
            self.deliver()
        else:
            self._assert_can_transition(target)
        return True

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def start_processing(self):
        self._assert_can_transition(OrderStatus.PROCESSING)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.PROCESSING.value
            self.updated_at = now

        self.raise_(OrderProcessing(order_id=str(self.id), started_at=now))

    def ship(self):
        self._assert_can_transition(OrderStatus.SHIPPED)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.SHIPPED.value
            self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                carrier_tracking_number=self.carrier_tracking_number,
                shipped_at=now,
            )
        )

    def deliver(self):
        self._assert_can_transition(OrderStatus.DELIVERED)
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.DELIVERED.value
            self.is_delivered = True
            self.delivered_at = now
            self.updated_at = now

        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=now))

    def attach_tracking_number(self, carrier_tracking_number, notes=None):
        """Record the carrier tracking number; a processing order ships with it."""
        if OrderStatus(self.status) in (OrderStatus.CANCELLED, OrderStatus.DELIVERED):
            raise InvalidTransitionError(
                f"Cannot attach a tracking number to a {self.status} order",
                order_id=str(self.id),
            )
        if not carrier_tracking_number or not carrier_tracking_number.strip():
            raise ValidationError({"tracking_number": ["Tracking number is required"]})

        with atomic_change(self):
            self.carrier_tracking_number = carrier_tracking_number.strip()
            if notes:
                self.notes = notes
            self.updated_at = datetime.now(UTC)

        self.raise_(
            TrackingNumberAttached(
                order_id=str(self.id),
                carrier_tracking_number=self.carrier_tracking_number,
            )
        )

        if OrderStatus(self.status) == OrderStatus.PROCESSING:
            self.ship()

    def change_shipping_option(self, shipping_option):
        """Switch shipping option before shipment. Pricing stays as placed."""
        if shipping_option not in {option.value for option in ShippingOption}:
            raise ValidationError({"shipping_option": [f"Unsupported shipping option {shipping_option!r}"]})
        if OrderStatus(self.status) not in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            raise InvalidTransitionError(
                f"Shipping option cannot change once the order is {self.status}",
                order_id=str(self.id),
            )
        if shipping_option == self.shipping_option:
            return False

        previous = self.shipping_option
        now = datetime.now(UTC)
        with atomic_change(self):
            self.shipping_option = shipping_option
            self.estimated_delivery_date = estimate_delivery(shipping_option, now.date())
            self.updated_at = now

        self.raise_(
            ShippingOptionChanged(
                order_id=str(self.id),
                previous_option=previous,
                new_option=shipping_option,
                estimated_delivery_date=self.estimated_delivery_date,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, cancelled_by, reason=None):
        """Cancel the order.

        Returns the ``(product_id, quantity)`` lines whose stock must be
        credited back, or None when the order was already cancelled. The
        caller credits stock in the same unit of work that saves the order,
        so a cancelled order and its restored stock are saved together.
        """
        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            return None

        self._assert_can_transition(OrderStatus.CANCELLED)

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.CANCELLED.value
            self.stock_restored = True
            self.cancellation_reason = reason
            self.cancelled_by = cancelled_by
            self.cancelled_at = now
            self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_by=cancelled_by,
                was_paid=bool(self.is_paid),
                cancelled_at=now,
            )
        )
        return [(str(item.product_id), item.quantity) for item in self.items]

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def mark_paid(self, receipt):
        """Record a settlement receipt.

        Returns True on the first settlement and False when the same receipt
        is delivered again. A different receipt on a paid order, or any
        receipt on a cancelled order, is a ``PaymentConflictError``.
        """
        if self.is_paid:
            if self.payment_result.receipt_id == receipt.receipt_id:
                return False
            raise PaymentConflictError(
                "Order is already paid with a different receipt",
                order_id=str(self.id),
                recorded_receipt_id=self.payment_result.receipt_id,
                receipt_id=receipt.receipt_id,
            )

        if OrderStatus(self.status) == OrderStatus.CANCELLED:
            raise PaymentConflictError(
                "Cannot settle a cancelled order",
                order_id=str(self.id),
                receipt_id=receipt.receipt_id,
            )

        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_paid = True
            self.paid_at = receipt.settled_at
            self.payment_result = receipt
            self.last_payment_error = None
            if OrderStatus(self.status) == OrderStatus.PENDING:
                self.status = OrderStatus.PROCESSING.value
            self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                order_number=self.order_number,
                receipt_id=receipt.receipt_id,
                gateway=receipt.gateway,
                amount=receipt.amount if receipt.amount is not None else self.pricing.total_price,
                paid_at=receipt.settled_at,
            )
        )
        return True

    def record_payment_failure(self, gateway, reason):
        """Remember why the last payment attempt failed. Status and is_paid are untouched."""
        now = datetime.now(UTC)
        with atomic_change(self):
            self.last_payment_error = (reason or "Payment failed")[:500]
            self.updated_at = now

        self.raise_(
            OrderPaymentFailed(
                order_id=str(self.id),
                gateway=gateway,
                reason=self.last_payment_error,
                failed_at=now,
            )
        )

    def revert_payment(self, reverted_by):
        """Clear the payment facts (administrative correction). False when not paid."""
        if not self.is_paid:
            return False

        previous_receipt_id = self.payment_result.receipt_id if self.payment_result else None
        now = datetime.now(UTC)
        with atomic_change(self):
            self.is_paid = False
            self.paid_at = None
            self.payment_result = None
            self.updated_at = now

        self.raise_(
            OrderPaymentReverted(
                order_id=str(self.id),
                previous_receipt_id=previous_receipt_id,
                reverted_by=reverted_by,
                reverted_at=now,
            )
        )
        return True
