"""Checkout: one order per line item, all-or-nothing against stock and payment."""

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from storefront.cart.cart import Cart
from storefront.coupon.coupon import Coupon
from storefront.errors import InsufficientStock, InsufficientWalletBalance, PaymentRejected
from storefront.order.checkout import checkout_lock_keys
from storefront.order.order import Order, OrderStatus
from storefront.payment.payment import PaymentStatus
from storefront.stock.product import Product
from storefront.wallet.wallet import wallet_summary

STANDARD_SHIPPING = {"name": "Standard", "price": 50.0, "delivery_days": 5}


def _stock_of(product):
    return current_domain.repository_for(Product).get(product.id).stock


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _all_orders():
    return current_domain.repository_for(Order).all_orders()


class TestCashOnDelivery:
    def test_creates_one_pending_order(self, make_product, checkout):
        product = make_product(stock=5)

        result = checkout("user-001", [{"product_id": product.id, "quantity": 2}], 2050.0, shipping=STANDARD_SHIPPING)

        assert len(result["order_ids"]) == 1
        assert result["total"] == 2050.0
        order = _order(result["order_ids"][0])
        assert order.status == OrderStatus.ORDER_PLACED.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.payment_method == "Cash On Delivery"
        assert order.quantity == 2
        assert order.shipping_cost == 50.0

    def test_decrements_stock(self, make_product, checkout):
        product = make_product(stock=5)
        checkout("user-001", [{"product_id": product.id, "quantity": 2}], 2000.0)
        assert _stock_of(product) == 3

    def test_snapshots_product_details(self, make_product, checkout):
        product = make_product(name="Trail Runner", price=1000.0, model="TR-1", return_policy=True)

        result = checkout(
            "user-001",
            [{"product_id": product.id, "quantity": 1, "offer_price": 899.0}],
            1000.0,
        )

        order = _order(result["order_ids"][0])
        assert order.name == "Trail Runner"
        assert order.model == "TR-1"
        assert order.price == 1000.0
        assert order.offer_price == 899.0
        assert order.image_url == "https://img.example/Trail Runner.jpg"
        assert order.return_policy is True
        assert order.shipping_address.city == "Bengaluru"

    def test_one_order_per_item_sharing_an_order_number(self, make_product, checkout):
        shoes = make_product(name="Trail Runner", stock=5)
        socks = make_product(name="Wool Socks", price=200.0, stock=10)

        result = checkout(
            "user-001",
            [{"product_id": shoes.id, "quantity": 1}, {"product_id": socks.id, "quantity": 3}],
            1600.0,
        )

        orders = [_order(order_id) for order_id in result["order_ids"]]
        assert len(orders) == 2
        assert orders[0].order_number == orders[1].order_number
        assert orders[0].order_number.startswith("ORD-")
        assert _stock_of(shoes) == 4
        assert _stock_of(socks) == 7

    def test_above_limit_is_rejected(self, make_product, checkout):
        product = make_product(price=120000.01, stock=5)
        with pytest.raises(ValidationError) as exc:
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 120000.01)

        assert "total" in exc.value.messages
        assert _stock_of(product) == 5

    def test_limit_itself_is_accepted(self, make_product, checkout):
        product = make_product(price=120000.0, stock=5)
        result = checkout("user-001", [{"product_id": product.id, "quantity": 1}], 120000.0)
        assert len(result["order_ids"]) == 1

    def test_limit_is_configurable(self, make_product, checkout, monkeypatch):
        monkeypatch.setenv("STOREFRONT_COD_LIMIT", "1000")
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 1050.0, shipping=STANDARD_SHIPPING)


class TestStockValidation:
    def test_insufficient_stock_changes_nothing(self, make_product, checkout):
        plenty = make_product(name="Trail Runner", stock=5)
        scarce = make_product(name="Wool Socks", stock=1)

        with pytest.raises(InsufficientStock) as exc:
            checkout(
                "user-001",
                [{"product_id": plenty.id, "quantity": 2}, {"product_id": scarce.id, "quantity": 2}],
                2400.0,
            )

        assert exc.value.product_name == "Wool Socks"
        assert _stock_of(plenty) == 5
        assert _stock_of(scarce) == 1
        assert _all_orders() == []

    def test_repeated_lines_are_checked_together(self, make_product, checkout):
        product = make_product(stock=3)
        with pytest.raises(InsufficientStock):
            checkout(
                "user-001",
                [{"product_id": product.id, "quantity": 2}, {"product_id": product.id, "quantity": 2}],
                4000.0,
            )
        assert _stock_of(product) == 3

    def test_unknown_product(self, checkout):
        with pytest.raises(ObjectNotFoundError):
            checkout("user-001", [{"product_id": "missing", "quantity": 1}], 100.0)

    def test_zero_quantity_is_rejected(self, make_product, checkout):
        product = make_product()
        with pytest.raises(ValidationError):
            checkout("user-001", [{"product_id": product.id, "quantity": 0}], 100.0)

    def test_empty_items_are_rejected(self, checkout):
        with pytest.raises(ValidationError):
            checkout("user-001", [], 100.0)


class TestPaymentResolution:
    def test_unknown_method_is_rejected(self, make_product, checkout):
        product = make_product()
        with pytest.raises(ValidationError) as exc:
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 1000.0, payment_method="Cheque")
        assert "payment_method" in exc.value.messages

    def test_verified_razorpay_payment_is_successful(self, make_product, checkout, verified_payment):
        product = make_product(stock=5)
        verified_payment("pay_001")

        result = checkout(
            "user-001",
            [{"product_id": product.id, "quantity": 2}],
            2000.0,
            payment_method="Razorpay",
            payment_id="pay_001",
        )

        order = _order(result["order_ids"][0])
        assert order.payment_status == PaymentStatus.SUCCESSFUL.value
        assert order.payment_id == "pay_001"

    def test_razorpay_needs_payment_id(self, make_product, checkout):
        product = make_product()
        with pytest.raises(ValidationError):
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 1000.0, payment_method="Razorpay")

    def test_unverified_payment_is_not_found(self, make_product, checkout):
        product = make_product(stock=5)
        with pytest.raises(ObjectNotFoundError):
            checkout(
                "user-001",
                [{"product_id": product.id, "quantity": 1}],
                1000.0,
                payment_method="Razorpay",
                payment_id="pay_unknown",
            )
        assert _stock_of(product) == 5

    def test_unsuccessful_payment_is_rejected(self, make_product, checkout, verified_payment):
        product = make_product(stock=5)
        verified_payment("pay_002", status="Pending")

        with pytest.raises(PaymentRejected):
            checkout(
                "user-001",
                [{"product_id": product.id, "quantity": 1}],
                1000.0,
                payment_method="Razorpay",
                payment_id="pay_002",
            )
        assert _stock_of(product) == 5


class TestWalletPayment:
    def test_debits_checkout_total(self, make_product, checkout, fund_wallet):
        product = make_product(stock=5)
        fund_wallet("user-001", 3000.0)

        result = checkout(
            "user-001",
            [{"product_id": product.id, "quantity": 2}],
            2050.0,
            payment_method="Wallet",
            shipping=STANDARD_SHIPPING,
        )

        order = _order(result["order_ids"][0])
        assert order.payment_status == PaymentStatus.SUCCESSFUL.value
        summary = wallet_summary("user-001")
        assert summary["balance"] == 950.0
        assert summary["transactions"][0]["type"] == "Debit"
        assert summary["transactions"][0]["amount"] == 2050.0

    def test_insufficient_balance_changes_nothing(self, make_product, checkout, fund_wallet):
        product = make_product(stock=5)
        fund_wallet("user-001", 100.0)

        with pytest.raises(InsufficientWalletBalance):
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 1000.0, payment_method="Wallet")

        assert _stock_of(product) == 5
        assert _all_orders() == []
        assert wallet_summary("user-001")["balance"] == 100.0

    def test_missing_wallet_counts_as_empty(self, make_product, checkout):
        product = make_product(stock=5)
        with pytest.raises(InsufficientWalletBalance):
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 1000.0, payment_method="Wallet")


class TestIdempotency:
    def test_replay_returns_same_orders(self, make_product, checkout):
        product = make_product(stock=5)
        items = [{"product_id": product.id, "quantity": 2}]

        first = checkout("user-001", items, 2000.0, idempotency_key="chk-1")
        second = checkout("user-001", items, 2000.0, idempotency_key="chk-1")

        assert first == second
        assert _stock_of(product) == 3
        assert len(_all_orders()) == 1

    def test_keys_are_per_customer(self, make_product, checkout):
        product = make_product(stock=5)
        items = [{"product_id": product.id, "quantity": 1}]

        first = checkout("user-001", items, 1000.0, idempotency_key="chk-1")
        second = checkout("user-002", items, 1000.0, idempotency_key="chk-1")

        assert first["order_ids"] != second["order_ids"]
        assert _stock_of(product) == 3


class TestCoupons:
    def test_redeems_coupon_for_all_orders(self, make_product, make_coupon, checkout):
        shoes = make_product(name="Trail Runner")
        socks = make_product(name="Wool Socks", price=200.0)
        make_coupon("SAVE10", 10.0)

        result = checkout(
            "user-001",
            [{"product_id": shoes.id, "quantity": 1}, {"product_id": socks.id, "quantity": 1}],
            1190.0,
            coupon_code="save10",
        )

        coupon = current_domain.repository_for(Coupon).get_by_code("SAVE10")
        assert coupon.users_taken == ["user-001"]
        assert sorted(coupon.redemptions[0].active_order_ids()) == sorted(result["order_ids"])
        assert _order(result["order_ids"][0]).coupon_applied.coupon_code == "SAVE10"
        assert result["total"] == 1190.0
        assert [_order(order_id).coupon_applied.offer_amount for order_id in result["order_ids"]] == [10.0, 0.0]

    def test_unknown_coupon_changes_nothing(self, make_product, checkout):
        product = make_product(stock=5)
        with pytest.raises(ObjectNotFoundError):
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 1000.0, coupon_code="NOPE")
        assert _stock_of(product) == 5


class TestCart:
    def test_cart_is_emptied(self, make_product, checkout):
        product = make_product(stock=5)
        cart_repo = current_domain.repository_for(Cart)
        cart = Cart.create("user-001")
        cart.add_item(product.id, 2)
        cart_repo.add(cart)

        checkout("user-001", [{"product_id": product.id, "quantity": 2}], 2000.0)

        assert len(cart_repo.find_by_user("user-001").items) == 0


class TestCheckoutTotal:
    def test_total_is_priced_from_products_and_shipping(self, make_product, checkout):
        shoes = make_product(name="Trail Runner", stock=5)
        socks = make_product(name="Wool Socks", price=200.0, stock=10)

        result = checkout(
            "user-001",
            [{"product_id": shoes.id, "quantity": 1}, {"product_id": socks.id, "quantity": 3}],
            1700.0,
            shipping=STANDARD_SHIPPING,
        )

        assert result["total"] == 1700.0
        assert {_order(order_id).checkout_total for order_id in result["order_ids"]} == {1700.0}

    def test_mismatched_total_changes_nothing(self, make_product, checkout):
        product = make_product(stock=5)

        with pytest.raises(ValidationError) as exc:
            checkout("user-001", [{"product_id": product.id, "quantity": 2}], 1.0)

        assert "total" in exc.value.messages
        assert _stock_of(product) == 5
        assert _all_orders() == []

    def test_rounding_differences_are_tolerated(self, make_product, checkout):
        product = make_product(price=33.33, stock=5)
        result = checkout("user-001", [{"product_id": product.id, "quantity": 3}], 99.995)
        assert result["total"] == 99.99

    def test_wallet_cannot_be_underpaid(self, make_product, checkout, fund_wallet):
        product = make_product(stock=5)
        fund_wallet("user-001", 1.0)

        with pytest.raises(ValidationError):
            checkout("user-001", [{"product_id": product.id, "quantity": 1}], 1.0, payment_method="Wallet")

        assert wallet_summary("user-001")["balance"] == 1.0
        assert _stock_of(product) == 5

    def test_cash_on_delivery_ceiling_uses_priced_total(self, make_product, checkout):
        product = make_product(price=100000.0, stock=5)

        with pytest.raises(ValidationError):
            checkout("user-001", [{"product_id": product.id, "quantity": 3}], 1.0)
        with pytest.raises(ValidationError) as exc:
            checkout("user-001", [{"product_id": product.id, "quantity": 3}], 300000.0)

        assert "Cash On Delivery" in exc.value.messages["total"][0]
        assert _stock_of(product) == 5

    def test_coupon_discount_never_exceeds_the_lines(self, make_product, make_coupon, checkout):
        product = make_product(price=100.0, stock=5)
        make_coupon("BIGSAVE", 500.0)

        result = checkout("user-001", [{"product_id": product.id, "quantity": 1}], 0.0, coupon_code="BIGSAVE")

        assert result["total"] == 0.0
        assert _order(result["order_ids"][0]).coupon_applied.offer_amount == 100.0


class TestItemCoupons:
    def test_item_level_coupon_is_rejected(self, make_product, make_coupon, checkout):
        product = make_product(stock=5)
        make_coupon("SAVE10", 10.0)

        with pytest.raises(ValidationError) as exc:
            checkout("user-001", [{"product_id": product.id, "quantity": 1, "coupon_code": "SAVE10"}], 990.0)

        assert "items" in exc.value.messages
        assert _stock_of(product) == 5

    def test_lock_key_ignores_case_and_whitespace(self, make_product):
        product = make_product()
        items = [{"product_id": product.id, "quantity": 1}]

        assert checkout_lock_keys("user-001", items, " save10 ")[-1] == "coupon:SAVE10"
        assert checkout_lock_keys("user-001", items, "SAVE10")[-1] == "coupon:SAVE10"
