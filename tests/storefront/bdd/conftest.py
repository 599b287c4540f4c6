"""Shared BDD fixtures and step definitions for the storefront."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then
from storefront.order.order import Order
from storefront.stock.product import Product
from storefront.wallet.wallet import wallet_summary


# ---------------------------------------------------------------------------
# Scenario state
# ---------------------------------------------------------------------------
@pytest.fixture()
def products():
    """Products created by Given steps, keyed by name."""
    return {}


@pytest.fixture()
def outcome():
    """What the When steps produced: the checkout result or error, and the last transition."""
    return {"result": None, "error": None, "order_id": None, "transition": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:g} with {stock:d} in stock'))
def _(products, make_product, name, price, stock):
    products[name] = make_product(name=name, price=price, stock=stock)


@given(parsers.cfparse('"{user_id}" has {amount:g} in their wallet'))
def _(fund_wallet, user_id, amount):
    fund_wallet(user_id, amount)


@given(parsers.cfparse('a verified payment "{payment_id}"'))
def _(verified_payment, payment_id):
    verified_payment(payment_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(outcome, status):
    assert current_domain.repository_for(Order).get(outcome["order_id"]).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(outcome, status):
    assert current_domain.repository_for(Order).get(outcome["order_id"]).payment_status == status


@then(parsers.cfparse('"{name}" has {stock:d} in stock'))
def _(products, name, stock):
    assert current_domain.repository_for(Product).get(products[name].id).stock == stock


@then(parsers.cfparse('"{user_id}" has a wallet balance of {amount:g}'))
def _(user_id, amount):
    assert wallet_summary(user_id)["balance"] == amount
