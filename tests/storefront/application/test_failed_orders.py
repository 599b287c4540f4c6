import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.order.failed_order import FailedOrder, RecordFailedOrder
from storefront.order.order import Order, OrderStatus
from storefront.order.promotion import PromoteFailedOrder
from storefront.payment.payment import PaymentStatus
from storefront.stock.product import Product

ADDRESS = {"name": "Asha Rao", "street": "12 MG Road", "city": "Bengaluru", "postal_code": "560001"}


def _record(order_number="ORD-FAIL-1", user_id="user-001", product_id="prod-001", payment_method="Razorpay"):
    command = RecordFailedOrder(
        order_number=order_number,
        user_id=user_id,
        product_id=product_id,
        name="Trail Runner",
        price=1000.0,
        quantity=2,
        payment_method=payment_method,
        payment_id="pay_009",
        shipping_address=json.dumps(ADDRESS),
        reason="Gateway timeout",
    )
    return current_domain.process(command, asynchronous=False)


def _promote(order_number="ORD-FAIL-1", user_id="user-001", product_id="prod-001"):
    command = PromoteFailedOrder(
        order_number=order_number,
        user_id=user_id,
        product_id=product_id,
        name="Trail Runner",
        price=1000.0,
        quantity=2,
        payment_method="Razorpay",
        payment_id="pay_009",
        coupon_code="save10",
        coupon_discount=100.0,
        shipping=json.dumps({"name": "Standard", "price": 50.0, "delivery_days": 5}),
        shipping_address=json.dumps(ADDRESS),
    )
    return current_domain.process(command, asynchronous=False)


class TestRecordFailedOrder:
    def test_records_failed_checkout(self):
        failed_id = _record()

        failed = current_domain.repository_for(FailedOrder).get(failed_id)
        assert failed.order_number == "ORD-FAIL-1"
        assert failed.status == "Payment failed"
        assert failed.payment_status == "Pending"
        assert failed.failure_reason == "Gateway timeout"
        assert json.loads(failed.shipping_address)["city"] == "Bengaluru"

    def test_order_number_is_recorded_once(self):
        _record()
        with pytest.raises(ValidationError):
            _record()

    def test_unknown_payment_method_is_rejected(self):
        with pytest.raises(ValidationError):
            _record(order_number="ORD-FAIL-2", payment_method="Cheque")


class TestPromoteFailedOrder:
    def test_creates_paid_order(self):
        _record()

        order_id = _promote()

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.ORDER_PLACED.value
        assert order.payment_status == PaymentStatus.SUCCESSFUL.value
        assert order.order_number == "ORD-FAIL-1"
        assert order.shipping_cost == 50.0
        assert order.coupon_applied.coupon_code == "SAVE10"
        assert order.coupon_applied.offer_amount == 100.0
        assert order.expected_delivery_date is not None

    def test_deletes_failed_record(self):
        _record()
        _promote()
        assert current_domain.repository_for(FailedOrder).find_by_order_number("ORD-FAIL-1") is None

    def test_works_without_failed_record(self):
        order_id = _promote(order_number="ORD-FAIL-3")
        assert current_domain.repository_for(Order).get(order_id).order_number == "ORD-FAIL-3"

    def test_promoting_twice_returns_the_same_order(self):
        _record()

        first = _promote()
        second = _promote()

        assert first == second
        orders = current_domain.repository_for(Order).by_order_number("ORD-FAIL-1")
        assert len(orders) == 1

    def test_does_not_touch_stock(self, make_product):
        product = make_product(stock=5)
        _record(product_id=product.id)

        _promote(product_id=product.id)

        assert current_domain.repository_for(Product).get(product.id).stock == 5

