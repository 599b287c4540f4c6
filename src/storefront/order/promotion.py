"""Promote a failed checkout into a confirmed order.

The client sends the order data it still holds for the failed checkout. A new
paid Order is created from it and the FailedOrder with the same order number,
if any, is deleted in the same Unit of Work. Promoting the same order number
and product again returns the order already created.
"""

import json

import structlog
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront import settings
from storefront.domain import storefront
from storefront.order.failed_order import FailedOrder
from storefront.order.order import AppliedCoupon, Order, ShippingAddress, ShippingOption
from storefront.payment.resolver import parse_payment_method

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class PromoteFailedOrder:
    order_number = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    model = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    offer_price = Float(min_value=0.0)
    payment_method = String(required=True, max_length=50)
    payment_id = String(max_length=100)
    image_url = String(max_length=1000)
    return_policy = Boolean(default=False)
    coupon_code = String(max_length=50)
    coupon_discount = Float(min_value=0.0)
    shipping = Text()  # JSON {name, price, delivery_days}
    shipping_address = Text()  # JSON address snapshot


@storefront.command_handler(part_of=Order)
class PromoteFailedOrderHandler:
    @handle(PromoteFailedOrder)
    def promote_failed_order(self, command: PromoteFailedOrder) -> str:
        order_repo = current_domain.repository_for(Order)
        for existing in order_repo.by_order_number(command.order_number):
            if str(existing.product_id) == str(command.product_id):
                logger.info(
                    "Failed order already promoted",
                    order_id=str(existing.id),
                    order_number=command.order_number,
                )
                return str(existing.id)

        coupon = (
            AppliedCoupon(coupon_code=command.coupon_code.strip().upper(), offer_amount=command.coupon_discount)
            if command.coupon_code
            else None
        )

        order = Order.promote(
            order_number=command.order_number,
            user_id=command.user_id,
            product_id=command.product_id,
            name=command.name,
            model=command.model,
            price=command.price,
            quantity=command.quantity,
            offer_price=command.offer_price,
            payment_method=parse_payment_method(command.payment_method),
            payment_id=command.payment_id,
            delivery_days=settings.delivery_days(),
            coupon_applied=coupon,
            shipping=ShippingOption(**json.loads(command.shipping)) if command.shipping else None,
            shipping_address=(
                ShippingAddress(**json.loads(command.shipping_address)) if command.shipping_address else None
            ),
            image_url=command.image_url,
            return_policy=command.return_policy,
        )
        order_repo.add(order)

        failed_repo = current_domain.repository_for(FailedOrder)
        failed = failed_repo.find_by_order_number(command.order_number)
        if failed is not None:
            failed_repo._dao.delete(failed)

        logger.info(
            "Failed order promoted",
            order_id=str(order.id),
            order_number=command.order_number,
            failed_order_deleted=failed is not None,
        )
        return str(order.id)
