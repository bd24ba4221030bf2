"""Read-side lookups and listings for orders."""

import math
from datetime import timedelta

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.order.order import Order, OrderStatus

STATUS_MESSAGES = {
    OrderStatus.PENDING: "Your order is awaiting confirmation",
    OrderStatus.PROCESSING: "Your order is being processed",
    OrderStatus.SHIPPED: "Your order has been shipped",
    OrderStatus.DELIVERED: "Your order has been delivered",
    OrderStatus.CANCELLED: "Your order has been cancelled",
}


def _orders():
    return current_domain.repository_for(Order)._dao.query


def _find_one(**filters):
    results = _orders().filter(**filters).all().items
    return results[0] if results else None


def find_by_order_number(order_number):
    return _find_one(order_number=order_number)


def find_by_tracking_code(tracking_code):
    return _find_one(tracking_code=tracking_code)


def orders_for_customer(customer_id):
    """All orders placed by a signed-in customer, newest first."""
    return _orders().filter(customer_id=customer_id).order_by("-created_at").limit(None).all().items


def list_orders(status=None, page=1, limit=10):
    """One page of orders for back-office review, newest first."""
    query = _orders()
    if status:
        if status not in {s.value for s in OrderStatus}:
            raise ValidationError({"status": [f"Unknown order status '{status}'"]})
        query = query.filter(status=status)
    result = query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
    return {
        "orders": result.items,
        "total": result.total,
        "total_pages": math.ceil(result.total / limit) if result.total else 0,
        "current_page": page,
    }


def status_message(status):
    try:
        return STATUS_MESSAGES[OrderStatus(status)]
    except ValueError:
        return "Order status unknown"


def tracking_milestones(order):
    """Timeline of the order's progress. Intermediate dates are estimates from the placement date."""
    status = OrderStatus(order.status)
    placed_at = order.created_at
    reached = {
        OrderStatus.PROCESSING: status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        OrderStatus.SHIPPED: status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        OrderStatus.DELIVERED: status == OrderStatus.DELIVERED,
    }

    milestones = [
        {"stage": "placed", "title": "Order placed", "date": placed_at, "completed": True},
        {
            "stage": "processing",
            "title": "Processing",
            "date": placed_at + timedelta(days=1) if reached[OrderStatus.PROCESSING] and placed_at else None,
            "completed": reached[OrderStatus.PROCESSING],
        },
        {
            "stage": "shipped",
            "title": "Shipped",
            "date": placed_at + timedelta(days=2) if reached[OrderStatus.SHIPPED] and placed_at else None,
            "completed": reached[OrderStatus.SHIPPED],
        },
        {
            "stage": "delivered",
            "title": "Delivered",
            "date": order.delivered_at,
            "completed": reached[OrderStatus.DELIVERED],
        },
    ]

    if status == OrderStatus.CANCELLED:
        milestones.append({"stage": "cancelled", "title": "Cancelled", "date": order.cancelled_at, "completed": True})
    return milestones


def public_tracking_view(order):
    """The limited view of an order shown to anyone holding its tracking code."""
    return {
        "tracking_code": order.tracking_code,
        "order_number": order.order_number,
        "status": order.status,
        "status_message": status_message(order.status),
        "shipping_option": order.shipping_option,
        "estimated_delivery_date": order.estimated_delivery_date,
        "carrier_tracking_number": order.carrier_tracking_number,
        "is_delivered": bool(order.is_delivered),
        "delivered_at": order.delivered_at,
        "created_at": order.created_at,
        "milestones": tracking_milestones(order),
    }
