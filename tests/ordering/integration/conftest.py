import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from ordering.api import cart_router, order_router, payment_router, register_error_handlers

ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
CUSTOMER = {"X-User-Id": "cust-001"}


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(cart_router)
    register_error_handlers(app)
    return TestClient(app)


@pytest.fixture()
def admin_headers():
    return dict(ADMIN)


@pytest.fixture()
def customer_headers():
    return dict(CUSTOMER)


@pytest.fixture()
def order_payload(lamp):
    return {
        "items": [{"product_id": lamp, "quantity": 2}],
        "shipping_address": {
            "full_name": "Sara Ahmadi",
            "phone": "09120000000",
            "street": "12 Valiasr St",
            "city": "Tehran",
            "postal_code": "1234567890",
        },
        "payment_method": "redirect_gateway",
    }
