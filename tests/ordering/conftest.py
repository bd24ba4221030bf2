import hashlib
import hmac
import json
import time

import pytest
from ordering.config import get_settings
from ordering.notifications import set_mailer
from ordering.notifications.fake_mailer import FakeOrderMailer
from ordering.order.creation import PlaceOrder
from ordering.payment.gateway import set_redirect_gateway, set_webhook_gateway
from ordering.payment.gateway.fake_adapter import FakeRedirectGateway, FakeWebhookGateway
from ordering.stock.product import Product
from protean import current_domain
from protean.integrations.pytest import DomainFixture

SHIPPING_ADDRESS = {
    "full_name": "Sara Ahmadi",
    "phone": "09120000000",
    "street": "12 Valiasr St",
    "city": "Tehran",
    "state": "Tehran",
    "postal_code": "1234567890",
    "country": "IR",
}

GUEST_CONTACT = {"email": "guest@example.com", "phone": "09121111111"}


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Catalogue data
# ---------------------------------------------------------------------------
def _add_product(name="Desk Lamp", price=300_000.0, stock=10, discount_price=None):
    product = Product.create(name=name, price=price, stock=stock, discount_price=discount_price)
    current_domain.repository_for(Product).add(product)
    return str(product.id)


@pytest.fixture()
def add_product():
    return _add_product


@pytest.fixture()
def stock_of():
    def _stock_of(product_id):
        return current_domain.repository_for(Product).get(product_id).stock

    return _stock_of


@pytest.fixture()
def lamp():
    return _add_product()


@pytest.fixture()
def kettle():
    return _add_product(name="Kettle", price=150_000.0, stock=20)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
def _place_order(
    lines,
    customer_id="cust-001",
    guest_contact=None,
    payment_method="redirect_gateway",
    shipping_option="standard",
    promo_code=None,
):
    """Place an order through the command and return its id."""
    return current_domain.process(
        PlaceOrder(
            customer_id=None if guest_contact else customer_id,
            guest_contact=json.dumps(guest_contact) if guest_contact else None,
            items=json.dumps([{"product_id": product_id, "quantity": quantity} for product_id, quantity in lines]),
            shipping_address=json.dumps(SHIPPING_ADDRESS),
            shipping_option=shipping_option,
            payment_method=payment_method,
            promo_code=promo_code,
        ),
        asynchronous=False,
    )


@pytest.fixture()
def place_order():
    return _place_order


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def redirect_gateway():
    gateway = FakeRedirectGateway()
    set_redirect_gateway(gateway)
    return gateway


@pytest.fixture()
def webhook_gateway():
    gateway = FakeWebhookGateway()
    set_webhook_gateway(gateway)
    return gateway


@pytest.fixture()
def mailer():
    adapter = FakeOrderMailer()
    set_mailer(adapter)
    return adapter


@pytest.fixture()
def guest_contact():
    return dict(GUEST_CONTACT)


def _sign_webhook(payload: bytes, secret: str | None = None, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header the way the gateway signs deliveries."""
    secret = secret or get_settings().webhook_secret
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture()
def sign_webhook():
    return _sign_webhook
