"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.order.fulfillment import AdvanceOrderStatus
from ordering.order.order import Order
from ordering.shared.errors import OrderingError
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for the error raised by the last When step."""
    return {"exc": None}


@pytest.fixture()
def run_command(error):
    """Process a command, capturing a rejection into ``error``."""

    def _run(command):
        try:
            return current_domain.process(command, asynchronous=False)
        except (ValidationError, OrderingError) as exc:
            error["exc"] = exc
            return None

    return _run


def load_order(order_id):
    return current_domain.repository_for(Order).get(order_id)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a product with {stock:d} units in stock"), target_fixture="product_id")
def _(add_product, stock):
    return add_product(stock=stock)


@given(parsers.cfparse("a pending order for {quantity:d} of it"), target_fixture="order_id")
def _(place_order, product_id, quantity):
    return place_order([(product_id, quantity)])


@given(parsers.cfparse('the order was moved to "{status}"'))
def _(order_id, status):
    current_domain.process(AdvanceOrderStatus(order_id=order_id, status=status), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order_id, status):
    assert load_order(order_id).status == status


@then(parsers.cfparse("the product has {stock:d} units in stock"))
def _(stock_of, product_id, stock):
    assert stock_of(product_id) == stock


@then(parsers.cfparse('the order action fails with "{code}"'))
def _(error, code):
    assert error["exc"] is not None, "Expected the action to be rejected"
    actual = "validation_error" if isinstance(error["exc"], ValidationError) else error["exc"].code
    assert actual == code


@then(parsers.cfparse('the order records it was cancelled by "{actor}"'))
def _(order_id, actor):
    assert load_order(order_id).cancelled_by == actor
