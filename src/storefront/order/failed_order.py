"""FailedOrder aggregate: checkout attempts that never became orders.

The client records a failed order when payment went through the gateway but
checkout did not complete. The record is shown in the customer's order list
until an admin or the client promotes it into a real order with
``PromoteFailedOrder``, which deletes it.
"""

import json
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.order.events import FailedOrderRecorded
from storefront.payment.resolver import parse_payment_method
from storefront.utils.queries import fetch_all

logger = structlog.get_logger(__name__)


@storefront.aggregate
class FailedOrder:
    order_number = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    product_id = Identifier()
    name = String(max_length=255)
    model = String(max_length=255)
    price = Float(min_value=0.0)
    quantity = Integer(min_value=1)
    image_url = String(max_length=1000)
    return_policy = Boolean(default=False)
    payment_method = String(max_length=50)
    payment_id = String(max_length=100)
    shipping_address = Text()  # JSON snapshot
    status = String(max_length=50, default="Payment failed")
    payment_status = String(max_length=50, default="Pending")
    failure_reason = String(max_length=500)
    created_at = DateTime()

    @classmethod
    def record(cls, order_number, user_id, reason=None, shipping_address=None, **details):
        failed = cls(
            order_number=order_number,
            user_id=user_id,
            failure_reason=reason,
            shipping_address=json.dumps(shipping_address) if shipping_address else None,
            created_at=datetime.now(UTC),
            **details,
        )
        failed.raise_(
            FailedOrderRecorded(
                failed_order_id=str(failed.id),
                user_id=str(user_id),
                order_number=order_number,
                reason=reason,
            )
        )
        return failed


@storefront.repository(part_of=FailedOrder)
class FailedOrderRepository:
    def for_user(self, user_id) -> list[FailedOrder]:
        return fetch_all(self._dao.query.filter(user_id=str(user_id)))

    def find_by_order_number(self, order_number) -> FailedOrder | None:
        return self._dao.query.filter(order_number=order_number).all().first


@storefront.command(part_of="FailedOrder")
class RecordFailedOrder:
    order_number = String(required=True, max_length=50)
    user_id = Identifier(required=True)
    product_id = Identifier()
    name = String(max_length=255)
    model = String(max_length=255)
    price = Float(min_value=0.0)
    quantity = Integer(min_value=1)
    image_url = String(max_length=1000)
    return_policy = Boolean(default=False)
    payment_method = String(max_length=50)
    payment_id = String(max_length=100)
    shipping_address = Text()  # JSON
    reason = String(max_length=500)


@storefront.command_handler(part_of=FailedOrder)
class FailedOrderCommandHandler:
    @handle(RecordFailedOrder)
    def record_failed_order(self, command: RecordFailedOrder) -> str:
        repo = current_domain.repository_for(FailedOrder)
        if repo.find_by_order_number(command.order_number) is not None:
            raise ValidationError({"order_number": [f"Failed order {command.order_number} is already recorded"]})
        if command.payment_method:
            parse_payment_method(command.payment_method)

        failed = FailedOrder.record(
            order_number=command.order_number,
            user_id=command.user_id,
            reason=command.reason,
            shipping_address=json.loads(command.shipping_address) if command.shipping_address else None,
            product_id=command.product_id,
            name=command.name,
            model=command.model,
            price=command.price,
            quantity=command.quantity,
            image_url=command.image_url,
            return_policy=command.return_policy,
            payment_method=command.payment_method,
            payment_id=command.payment_id,
        )
        repo.add(failed)

        logger.info(
            "Failed order recorded",
            order_number=command.order_number,
            user_id=str(command.user_id),
            reason=command.reason,
        )
        return str(failed.id)
