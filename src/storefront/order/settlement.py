"""Order status transitions: delivery, cancellation and return.

Each command loads one order, applies the transition on the aggregate and
then carries out its side effects in the same Unit of Work:

- cancellation and return put the stock back (or record a pending
  restoration when the product is gone), refund paid orders into the
  customer's wallet and release the order's coupon redemption;
- repeating a cancellation or return of a settled order changes nothing and
  reports ``already_settled``.

``UpdateOrderStatus`` is the generic admin entry point; it routes to the
specific transitions and rejects everything else. Turning a failed checkout
into an order is ``PromoteFailedOrder``, not a status update.
"""

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront import settings
from storefront.coupon.coupon import Coupon
from storefront.domain import storefront
from storefront.order.order import Order, OrderStatus, Settlement
from storefront.stock import ledger
from storefront.utils.locking import coupon_key, order_key, process_serialized, product_key, wallet_key
from storefront.wallet.wallet import credit_wallet

logger = structlog.get_logger(__name__)

_REFUND_DESCRIPTIONS = {
    OrderStatus.CANCELLED: "Refund for cancelled order",
    OrderStatus.RETURNED: "Refund for returned order",
}


@storefront.command(part_of="Order")
class MarkOrderDelivered:
    order_id = Identifier(required=True)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class ReturnOrder:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    reason = String(max_length=500)


def _outcome(order: Order, settlement: Settlement | None = None) -> dict:
    return {
        "order_id": str(order.id),
        "status": order.status,
        "payment_status": order.payment_status,
        "already_settled": settlement.already_settled if settlement else False,
        "refunded_amount": settlement.refunded_amount if settlement else 0.0,
    }


def _release_coupon(order: Order) -> None:
    if not order.coupon_applied or not order.coupon_applied.coupon_code:
        return

    repo = current_domain.repository_for(Coupon)
    coupon = repo.find_by_code(order.coupon_applied.coupon_code)
    if coupon is None:
        logger.warning(
            "Coupon not found while releasing redemption",
            order_id=str(order.id),
            coupon_code=order.coupon_applied.coupon_code,
        )
        return

    if coupon.release(order.id):
        repo.add(coupon)


def deliver(order_id) -> dict:
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)

    order.mark_delivered(settings.return_window_days())
    repo.add(order)

    logger.info(
        "Order delivered",
        order_id=str(order.id),
        payment_method=order.payment_method,
        payment_status=order.payment_status,
    )
    return _outcome(order)


def settle(order_id, target: OrderStatus, reason=None) -> dict:
    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)

    settlement = order.cancel(reason) if target == OrderStatus.CANCELLED else order.mark_returned(reason)
    if settlement.already_settled:
        logger.info("Order already settled", order_id=str(order.id), status=order.status, requested=target.value)
        return _outcome(order, settlement)

    ledger.restore(order)

    if settlement.refunded and settlement.refunded_amount > 0:
        credit_wallet(order.user_id, settlement.refunded_amount, _REFUND_DESCRIPTIONS[target])

    _release_coupon(order)
    repo.add(order)

    logger.info(
        "Order settled",
        order_id=str(order.id),
        status=order.status,
        payment_status=order.payment_status,
        refunded_amount=settlement.refunded_amount,
    )
    return _outcome(order, settlement)


@storefront.command_handler(part_of=Order)
class OrderSettlementHandler:
    @handle(MarkOrderDelivered)
    def mark_delivered(self, command: MarkOrderDelivered) -> dict:
        return deliver(command.order_id)

    @handle(CancelOrder)
    def cancel_order(self, command: CancelOrder) -> dict:
        return settle(command.order_id, OrderStatus.CANCELLED, command.reason)

    @handle(ReturnOrder)
    def return_order(self, command: ReturnOrder) -> dict:
        return settle(command.order_id, OrderStatus.RETURNED, command.reason)

    @handle(UpdateOrderStatus)
    def update_status(self, command: UpdateOrderStatus) -> dict:
        try:
            target = OrderStatus(command.status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status '{command.status}'"]}) from None

        if target == OrderStatus.DELIVERED:
            return deliver(command.order_id)
        if target in (OrderStatus.CANCELLED, OrderStatus.RETURNED):
            return settle(command.order_id, target, command.reason)

        raise ValidationError(
            {"status": [f"Orders cannot be moved to {target.value}; promote the failed order instead"]}
        )


def settlement_lock_keys(order_id) -> list[str]:
    """Keys to hold while an order transitions: the order, its product, the wallet and the coupon."""
    keys = [order_key(str(order_id))]
    try:
        order = current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        return keys

    keys.extend([product_key(str(order.product_id)), wallet_key(str(order.user_id))])
    if order.coupon_applied and order.coupon_applied.coupon_code:
        keys.append(coupon_key(order.coupon_applied.coupon_code))
    return keys


def process_transition(command) -> dict:
    """Run a transition command while holding its order's locks."""
    return process_serialized(command, *settlement_lock_keys(command.order_id))
