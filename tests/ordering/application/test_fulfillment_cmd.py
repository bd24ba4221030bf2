"""Application tests for administrative status changes, tracking numbers and shipping options."""

import pytest
from ordering.order.fulfillment import AdvanceOrderStatus, AttachTrackingNumber, ChangeShippingOption
from ordering.order.order import Order, OrderStatus
from ordering.shared.errors import InvalidTransitionError
from protean import current_domain
from protean.exceptions import ValidationError


def _advance(order_id, status):
    return current_domain.process(AdvanceOrderStatus(order_id=order_id, status=status), asynchronous=False)


def _get(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestAdvanceOrderStatus:
    def test_forward_path(self, lamp, place_order):
        order_id = place_order([(lamp, 1)], payment_method="cash_on_delivery")
        for status in ("processing", "shipped", "delivered"):
            assert _advance(order_id, status) is True
        order = _get(order_id)
        assert order.status == OrderStatus.DELIVERED.value
        assert order.is_delivered is True

    def test_same_status_reports_no_change(self, lamp, place_order):
        order_id = place_order([(lamp, 1)])
        _advance(order_id, "processing")
        assert _advance(order_id, "processing") is False

    def test_unknown_status(self, lamp, place_order):
        order_id = place_order([(lamp, 1)])
        with pytest.raises(ValidationError):
            _advance(order_id, "teleported")

    def test_skipping_a_step_rejected(self, lamp, place_order):
        order_id = place_order([(lamp, 1)])
        with pytest.raises(InvalidTransitionError):
            _advance(order_id, "delivered")
        assert _get(order_id).status == OrderStatus.PENDING.value


class TestAttachTrackingNumber:
    def test_processing_order_ships(self, lamp, place_order):
        order_id = place_order([(lamp, 1)])
        _advance(order_id, "processing")
        current_domain.process(
            AttachTrackingNumber(order_id=order_id, tracking_number="POST-778812", notes="Left at door"),
            asynchronous=False,
        )
        order = _get(order_id)
        assert order.status == OrderStatus.SHIPPED.value
        assert order.carrier_tracking_number == "POST-778812"
        assert order.notes == "Left at door"


class TestChangeShippingOption:
    def test_change_persists(self, lamp, place_order):
        order_id = place_order([(lamp, 1)])
        total = _get(order_id).pricing.total_price

        changed = current_domain.process(
            ChangeShippingOption(order_id=order_id, shipping_option="express"),
            asynchronous=False,
        )

        order = _get(order_id)
        assert changed is True
        assert order.shipping_option == "express"
        assert order.pricing.total_price == total
