"""Checkout: turn the customer's selection into one Order per line item.

Everything that can reject the checkout is checked before the first write:
the items, every product's stock, the total, the Cash On Delivery ceiling, the
payment and the coupon. The total is priced here from the products, the
shipping option and the coupon; the client's figure must agree with it. The writes (wallet debit, orders, stock decrements, coupon
redemption, clearing the cart) then share the handler's Unit of Work.

Callers serialize checkouts with ``checkout_lock_keys`` so that two checkouts
for the same product never both pass the stock check.
"""

import json
from uuid import uuid4

import structlog
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront import settings
from storefront.cart.cart import Cart
from storefront.coupon.coupon import Coupon
from storefront.domain import storefront
from storefront.order.order import AppliedCoupon, Order, ShippingAddress, ShippingOption
from storefront.payment.payment import PaymentMethod
from storefront.payment.resolver import parse_payment_method, resolve_payment_status
from storefront.stock import ledger
from storefront.utils.locking import coupon_key, product_key, wallet_key
from storefront.wallet.wallet import debit_wallet

logger = structlog.get_logger(__name__)

# Rounding slack between the client's total and the priced one
TOTAL_TOLERANCE = 0.01


@storefront.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON array of {product_id, quantity, offer_price?}
    payment_method = String(required=True, max_length=50)
    payment_id = String(max_length=100)
    total = Float(required=True, min_value=0.0)
    shipping = Text()  # JSON {name, price, delivery_days}
    shipping_address = Text()  # JSON address snapshot
    coupon_code = String(max_length=50)
    order_number = String(max_length=50)
    idempotency_key = String(max_length=100)


def parse_items(raw) -> list[dict]:
    items = json.loads(raw) if isinstance(raw, str) else raw
    if not items:
        raise ValidationError({"items": ["At least one order item is required"]})

    parsed = []
    for index, item in enumerate(items):
        if not item.get("product_id"):
            raise ValidationError({"items": [f"Item {index} has no product_id"]})
        try:
            quantity = int(item.get("quantity", 0))
        except (TypeError, ValueError):
            quantity = 0
        if quantity < 1:
            raise ValidationError({"items": [f"Item {index} must have a quantity of at least 1"]})
        if item.get("coupon_code") or item.get("coupon_discount"):
            raise ValidationError({"items": [f"Item {index} carries a coupon; coupons apply to the whole checkout"]})
        parsed.append({**item, "product_id": str(item["product_id"]), "quantity": quantity})
    return parsed


def checkout_lock_keys(user_id, items, coupon_code=None) -> list[str]:
    """Keys to hold while a checkout runs: its products, the customer's wallet and the coupon."""
    keys = [wallet_key(str(user_id))]
    keys.extend(product_key(product_id) for product_id in ledger.requested_quantities(parse_items(items)))
    if coupon_code:
        keys.append(coupon_key(coupon_code))
    return keys


def line_totals(items: list[dict], products: dict, shipping: ShippingOption | None) -> list[float]:
    """What each order line costs: the product's price times quantity plus the shipping option.

    Every line carries the full shipping option, and so is charged for it and refunds it.
    """
    shipping_price = (shipping.price or 0.0) if shipping else 0.0
    return [round(products[item["product_id"]].price * item["quantity"] + shipping_price, 2) for item in items]


def coupon_shares(totals: list[float], discount: float) -> list[float]:
    """Spread a coupon's discount over the lines in order, never beyond a line's own total."""
    remaining = discount or 0.0
    shares = []
    for total in totals:
        share = round(min(remaining, total), 2)
        shares.append(share)
        remaining -= share
    return shares


def _result(orders: list[Order], total: float) -> dict:
    return {"order_ids": [str(order.id) for order in orders], "total": total}


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command: PlaceOrder) -> dict:
        order_repo = current_domain.repository_for(Order)

        if command.idempotency_key:
            previous = order_repo.by_idempotency_key(command.user_id, command.idempotency_key)
            if previous:
                logger.info(
                    "Checkout replayed",
                    user_id=str(command.user_id),
                    idempotency_key=command.idempotency_key,
                    order_count=len(previous),
                )
                return _result(previous, previous[0].checkout_total)

        items = parse_items(command.items)
        method = parse_payment_method(command.payment_method)

        products = ledger.load_products(ledger.requested_quantities(items).keys())
        ledger.assert_available(items, products)

        coupon = None
        if command.coupon_code:
            coupon = current_domain.repository_for(Coupon).get_by_code(command.coupon_code)

        shipping = ShippingOption(**json.loads(command.shipping)) if command.shipping else None
        totals = line_totals(items, products, shipping)
        shares = coupon_shares(totals, coupon.discount if coupon else 0.0)
        total = round(sum(totals) - sum(shares), 2)

        if abs(command.total - total) > TOTAL_TOLERANCE:
            raise ValidationError({"total": [f"Checkout total {command.total:g} does not match {total:g}"]})

        if method == PaymentMethod.CASH_ON_DELIVERY and total > settings.cod_limit():
            raise ValidationError(
                {"total": [f"Cash On Delivery is not available for orders above {settings.cod_limit():g}"]}
            )

        payment_status = resolve_payment_status(method, command.payment_id)

        address = ShippingAddress(**json.loads(command.shipping_address)) if command.shipping_address else None
        order_number = command.order_number or f"ORD-{uuid4().hex[:12].upper()}"

        orders = []
        for item, share in zip(items, shares):
            product = products[item["product_id"]]
            orders.append(
                Order.place(
                    user_id=command.user_id,
                    product_id=item["product_id"],
                    name=product.name,
                    model=product.model,
                    price=product.price,
                    quantity=item["quantity"],
                    offer_price=item.get("offer_price"),
                    payment_method=method,
                    payment_status=payment_status,
                    payment_id=command.payment_id,
                    delivery_days=settings.delivery_days(),
                    order_number=order_number,
                    idempotency_key=command.idempotency_key,
                    coupon_applied=AppliedCoupon(coupon_code=coupon.code, offer_amount=share) if coupon else None,
                    shipping=shipping,
                    shipping_address=address,
                    image_url=product.first_image_url(),
                    return_policy=product.return_policy,
                    checkout_total=total,
                )
            )

        # Nothing below may reject the checkout except the wallet debit, which goes first
        if method == PaymentMethod.WALLET:
            debit_wallet(command.user_id, total, f"Payment for order {order_number}")

        for order in orders:
            ledger.decrement(products[str(order.product_id)], order.quantity)
            order_repo.add(order)

        if coupon is not None:
            coupon.redeem(command.user_id, [order.id for order in orders])
            current_domain.repository_for(Coupon).add(coupon)

        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.find_by_user(command.user_id)
        if cart is not None and cart.items:
            cart.clear()
            cart_repo.add(cart)

        logger.info(
            "Checkout completed",
            user_id=str(command.user_id),
            order_number=order_number,
            order_count=len(orders),
            payment_method=method.value,
            payment_status=payment_status.value,
            total=total,
        )
        return _result(orders, total)
