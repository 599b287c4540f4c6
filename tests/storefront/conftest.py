import json
import os

import pytest


@pytest.fixture(scope="session")
def _storefront_domain(request):
    """Initialize the storefront domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from storefront.domain import storefront

    storefront.init()
    return storefront


@pytest.fixture(scope="session", autouse=True)
def setup_db(_storefront_domain):
    from storefront.utils.db import drop_db, setup_db

    setup_db(_storefront_domain)

    yield

    drop_db(_storefront_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_storefront_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _storefront_domain.domain_context()
    ctx.push()

    yield

    from protean import current_domain
    from storefront.payment.gateway import reset_gateway

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    for _, broker in current_domain.brokers.items():
        broker._data_reset()

    current_domain.event_store.store._data_reset()
    reset_gateway()
    ctx.pop()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture
def make_product():
    from protean import current_domain
    from storefront.stock.product import Product

    def _make(name="Trail Runner", price=1000.0, stock=5, model="TR-1", images=None, return_policy=True):
        product = Product.create(
            name=name,
            price=price,
            stock=stock,
            model=model,
            images=images if images is not None else [{"secure_url": f"https://img.example/{name}.jpg", "public_id": name}],
            return_policy=return_policy,
        )
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture
def verified_payment():
    """Store a gateway payment record, as payment verification would."""
    from protean import current_domain
    from storefront.payment.payment import Payment

    def _make(payment_id="pay_001", amount=2050.0, status="Successful"):
        payment = Payment.record(payment_id=payment_id, amount=amount, method="card", status=status)
        current_domain.repository_for(Payment).add(payment)
        return payment

    return _make


@pytest.fixture
def make_coupon():
    from protean import current_domain
    from storefront.coupon.coupon import Coupon

    def _make(code="SAVE10", discount=10.0):
        coupon = Coupon.create(code, discount)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    return _make


@pytest.fixture
def fund_wallet():
    from protean import current_domain
    from storefront.wallet.wallet import Wallet

    def _fund(user_id, amount):
        repo = current_domain.repository_for(Wallet)
        wallet = repo.find_by_user(user_id) or Wallet.open(user_id)
        wallet.credit(amount, "Top up")
        repo.add(wallet)
        return wallet

    return _fund


@pytest.fixture
def checkout():
    """Place a checkout through the command handler and return its result."""
    from protean import current_domain
    from storefront.order.checkout import PlaceOrder

    def _checkout(
        user_id,
        items,
        total,
        payment_method="Cash On Delivery",
        payment_id=None,
        shipping=None,
        shipping_address=None,
        coupon_code=None,
        idempotency_key=None,
    ):
        command = PlaceOrder(
            user_id=user_id,
            items=json.dumps(items),
            payment_method=payment_method,
            payment_id=payment_id,
            total=total,
            shipping=json.dumps(shipping) if shipping else None,
            shipping_address=json.dumps(
                shipping_address
                or {"name": "Asha Rao", "street": "12 MG Road", "city": "Bengaluru", "postal_code": "560001"}
            ),
            coupon_code=coupon_code,
            idempotency_key=idempotency_key,
        )
        return current_domain.process(command, asynchronous=False)

    return _checkout
