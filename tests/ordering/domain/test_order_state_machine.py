"""Tests for Order status transitions, tracking numbers and cancellation."""

import pytest
from ordering.order.events import OrderCancelled, OrderShipped, ShippingOptionChanged
from ordering.order.order import Order, OrderStatus
from ordering.order.pricing import calculate_pricing
from ordering.shared.errors import InvalidTransitionError
from protean.exceptions import ValidationError


def _make_order():
    return Order.place(
        items_data=[
            {"product_id": "prod-001", "name": "Lamp", "price": 100_000.0, "image_url": None, "quantity": 2},
            {"product_id": "prod-002", "name": "Kettle", "price": 50_000.0, "image_url": None, "quantity": 1},
        ],
        shipping_address={"full_name": "Sara", "phone": "0912", "street": "1 St", "city": "Tehran"},
        payment_method="cash_on_delivery",
        pricing=calculate_pricing([(100_000.0, 2), (50_000.0, 1)]),
        customer_id="cust-001",
    )


def _order_at_state(target_status):
    order = _make_order()
    if target_status == OrderStatus.PENDING:
        return order
    order.start_processing()
    if target_status == OrderStatus.PROCESSING:
        return order
    order.ship()
    if target_status == OrderStatus.SHIPPED:
        return order
    order.deliver()
    return order


class TestForwardPath:
    def test_full_lifecycle(self):
        order = _make_order()
        order.start_processing()
        order.ship()
        order.deliver()
        assert order.status == OrderStatus.DELIVERED.value
        assert order.is_delivered is True
        assert order.delivered_at is not None

    def test_advance_same_status_is_noop(self):
        order = _order_at_state(OrderStatus.PROCESSING)
        assert order.advance("processing") is False

    def test_advance_routes_to_transition(self):
        order = _make_order()
        assert order.advance("processing") is True
        assert order.status == OrderStatus.PROCESSING.value

    @pytest.mark.parametrize(
        "start, target",
        [
            (OrderStatus.PENDING, "shipped"),
            (OrderStatus.PENDING, "delivered"),
            (OrderStatus.PROCESSING, "delivered"),
            (OrderStatus.SHIPPED, "processing"),
            (OrderStatus.DELIVERED, "shipped"),
            (OrderStatus.DELIVERED, "pending"),
        ],
    )
    def test_invalid_transitions(self, start, target):
        order = _order_at_state(start)
        with pytest.raises(InvalidTransitionError):
            order.advance(target)

    def test_cancelled_is_terminal(self):
        order = _make_order()
        order.cancel("customer")
        with pytest.raises(InvalidTransitionError):
            order.advance("processing")


class TestTrackingNumber:
    def test_processing_order_ships(self):
        order = _order_at_state(OrderStatus.PROCESSING)
        order.attach_tracking_number("TRK-123")
        assert order.status == OrderStatus.SHIPPED.value
        assert order.carrier_tracking_number == "TRK-123"
        assert any(isinstance(event, OrderShipped) for event in order._events)

    def test_pending_order_keeps_status(self):
        order = _make_order()
        order.attach_tracking_number("TRK-123")
        assert order.status == OrderStatus.PENDING.value

    @pytest.mark.parametrize("state", [OrderStatus.DELIVERED])
    def test_rejected_on_finished_orders(self, state):
        order = _order_at_state(state)
        with pytest.raises(InvalidTransitionError):
            order.attach_tracking_number("TRK-123")

    def test_rejected_on_cancelled_order(self):
        order = _make_order()
        order.cancel("admin")
        with pytest.raises(InvalidTransitionError):
            order.attach_tracking_number("TRK-123")

    def test_blank_number_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.attach_tracking_number("   ")


class TestShippingOption:
    def test_change_recomputes_estimate(self):
        order = _make_order()
        before = order.estimated_delivery_date
        assert order.change_shipping_option("same_day") is True
        assert order.estimated_delivery_date < before
        assert any(isinstance(event, ShippingOptionChanged) for event in order._events)

    def test_pricing_unchanged(self):
        order = _make_order()
        total = order.pricing.total_price
        order.change_shipping_option("express")
        assert order.pricing.total_price == total

    def test_same_option_is_noop(self):
        assert _make_order().change_shipping_option("standard") is False

    def test_rejected_after_shipment(self):
        order = _order_at_state(OrderStatus.SHIPPED)
        with pytest.raises(InvalidTransitionError):
            order.change_shipping_option("express")


class TestCancel:
    @pytest.mark.parametrize("state", [OrderStatus.PENDING, OrderStatus.PROCESSING])
    def test_cancel_returns_lines_to_restock(self, state):
        order = _order_at_state(state)
        lines = order.cancel("customer", reason="Changed my mind")
        assert sorted(lines) == [("prod-001", 2), ("prod-002", 1)]
        assert order.status == OrderStatus.CANCELLED.value
        assert order.stock_restored is True
        assert order.cancelled_by == "customer"
        assert order.cancellation_reason == "Changed my mind"

    def test_second_cancel_returns_none(self):
        order = _make_order()
        order.cancel("customer")
        order._events.clear()
        assert order.cancel("admin") is None
        assert order.cancelled_by == "customer"
        assert not order._events

    @pytest.mark.parametrize("state", [OrderStatus.SHIPPED, OrderStatus.DELIVERED])
    def test_cannot_cancel_after_shipment(self, state):
        order = _order_at_state(state)
        with pytest.raises(InvalidTransitionError):
            order.cancel("customer")

    def test_raises_order_cancelled(self):
        order = _make_order()
        order.cancel("guest")
        event = next(event for event in order._events if isinstance(event, OrderCancelled))
        assert event.cancelled_by == "guest"
        assert event.was_paid is False
