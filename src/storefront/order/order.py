"""Order aggregate: one purchased line item and its settlement state.

Checkout creates one Order per cart line. From then on the order only moves
through the transition table below; each move is a method on the aggregate so
that the status, the payment status and the dates always change together.

State Machine:
    Order placed / Pending → Delivered | Cancelled | Returned
    Delivered → Cancelled | Returned
    Cancelled, Returned → (settled; repeating either is a no-op)

Payment status is secondary state. Cash On Delivery orders become
``Successful`` on delivery, and a cancellation or return of a paid order marks
it ``Refunded``. An order is never ``Refunded`` unless it is settled.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from storefront.domain import storefront
from storefront.order.events import (
    FailedOrderPromoted,
    OrderCancelled,
    OrderDelivered,
    OrderPlaced,
    OrderRefunded,
    OrderReturned,
)
from storefront.order.refunds import is_refund_eligible, refund_amount
from storefront.payment.payment import PaymentMethod, PaymentStatus


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    ORDER_PLACED = "Order placed"
    PENDING = "Pending"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.ORDER_PLACED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED},
    OrderStatus.PENDING: {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.CANCELLED, OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.RETURNED: set(),
}

_SETTLED_STATES = {OrderStatus.CANCELLED, OrderStatus.RETURNED}


@dataclass(frozen=True)
class Settlement:
    """What a cancellation or return did to an order."""

    status: str
    already_settled: bool = False
    refunded: bool = False
    refunded_amount: float = 0.0


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, copied from the customer's address book at checkout."""

    name = String(max_length=255)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")
    phone = String(max_length=20)


@storefront.value_object(part_of="Order")
class ShippingOption:
    """The shipping method chosen at checkout."""

    name = String(max_length=100)
    price = Float(default=0.0, min_value=0.0)
    delivery_days = Integer(min_value=0)


@storefront.value_object(part_of="Order")
class AppliedCoupon:
    coupon_code = String(max_length=50)
    offer_amount = Float(min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    payment_id = String(max_length=100)
    order_number = String(max_length=50)
    idempotency_key = String(max_length=100)

    name = String(required=True, max_length=255)
    model = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    offer_price = Float(min_value=0.0)
    coupon_applied = ValueObject(AppliedCoupon)
    shipping_cost = Float(min_value=0.0)
    shipping = ValueObject(ShippingOption)
    image_url = String(max_length=1000)
    return_policy = Boolean(default=False)
    checkout_total = Float(min_value=0.0)

    status = String(choices=OrderStatus, default=OrderStatus.ORDER_PLACED.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(choices=PaymentMethod, required=True)

    shipping_address = ValueObject(ShippingAddress)

    order_date = DateTime()
    expected_delivery_date = DateTime()
    delivery_date = DateTime()
    return_within_date = DateTime()
    cancellation_reason = String(max_length=500)
    return_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def refunded_orders_must_be_settled(self):
        if self.payment_status == PaymentStatus.REFUNDED.value and self.status not in (
            OrderStatus.CANCELLED.value,
            OrderStatus.RETURNED.value,
        ):
            raise ValidationError({"payment_status": ["Only cancelled or returned orders can be refunded"]})

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        user_id,
        product_id,
        name,
        price,
        quantity,
        payment_method,
        payment_status,
        delivery_days,
        model=None,
        offer_price=None,
        payment_id=None,
        order_number=None,
        idempotency_key=None,
        coupon_applied=None,
        shipping=None,
        shipping_address=None,
        image_url=None,
        return_policy=False,
        checkout_total=None,
        status=OrderStatus.ORDER_PLACED,
    ):
        now = datetime.now(UTC)
        order = cls(
            user_id=user_id,
            product_id=product_id,
            payment_id=payment_id,
            order_number=order_number,
            idempotency_key=idempotency_key,
            name=name,
            model=model,
            price=price,
            quantity=quantity,
            offer_price=offer_price if offer_price is not None else price,
            coupon_applied=coupon_applied,
            shipping_cost=shipping.price if shipping else 0.0,
            shipping=shipping,
            image_url=image_url,
            return_policy=bool(return_policy),
            checkout_total=checkout_total,
            status=status.value,
            payment_status=payment_status.value,
            payment_method=payment_method.value,
            shipping_address=shipping_address,
            order_date=now,
            expected_delivery_date=now + timedelta(days=delivery_days),
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                user_id=str(user_id),
                product_id=str(product_id),
                order_number=order_number,
                quantity=quantity,
                price=price,
                payment_method=payment_method.value,
                payment_status=payment_status.value,
                placed_at=now,
            )
        )
        return order

    @classmethod
    def promote(cls, order_number, **order_data):
        """Create a confirmed, paid order for a checkout that was recorded as failed."""
        order = cls.place(
            order_number=order_number,
            payment_status=PaymentStatus.SUCCESSFUL,
            status=OrderStatus.ORDER_PLACED,
            **order_data,
        )
        order.raise_(
            FailedOrderPromoted(
                order_id=str(order.id),
                user_id=str(order.user_id),
                order_number=order_number,
                promoted_at=order.created_at,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

    @property
    def is_settled(self) -> bool:
        return OrderStatus(self.status) in _SETTLED_STATES

    @property
    def refundable_amount(self) -> float:
        return refund_amount(
            self.price,
            self.quantity,
            shipping_cost=self.shipping_cost,
            shipping_price=self.shipping.price if self.shipping else None,
            discount=self.coupon_applied.offer_amount if self.coupon_applied else None,
        )

    def _guard_payment_status(self, previous_payment_status: str) -> None:
        if self.payment_status == PaymentStatus.REFUNDED.value and not self.is_settled:
            self.payment_status = previous_payment_status

    def mark_delivered(self, return_window_days: int) -> None:
        self._assert_can_transition(OrderStatus.DELIVERED)

        previous_payment_status = self.payment_status
        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.DELIVERED.value
            self.delivery_date = now
            self.return_within_date = now + timedelta(days=return_window_days) if self.return_policy else None
            if self.payment_method == PaymentMethod.CASH_ON_DELIVERY.value:
                # Cash is collected at the door
                self.payment_status = PaymentStatus.SUCCESSFUL.value
            self.updated_at = now
            self._guard_payment_status(previous_payment_status)

        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                user_id=str(self.user_id),
                payment_status=self.payment_status,
                delivered_at=now,
                return_within_date=self.return_within_date,
            )
        )

    def cancel(self, reason: str | None = None) -> Settlement:
        return self._settle(OrderStatus.CANCELLED, reason)

    def mark_returned(self, reason: str | None = None) -> Settlement:
        return self._settle(OrderStatus.RETURNED, reason)

    def _settle(self, target: OrderStatus, reason: str | None) -> Settlement:
        if self.is_settled:
            return Settlement(status=self.status, already_settled=True)

        self._assert_can_transition(target)

        previous_payment_status = self.payment_status
        refund = is_refund_eligible(self.payment_method, previous_payment_status, target)
        amount = self.refundable_amount if refund else 0.0
        now = datetime.now(UTC)

        with atomic_change(self):
            self.status = target.value
            if target == OrderStatus.CANCELLED:
                self.cancellation_reason = reason
            else:
                self.return_reason = reason
            if refund:
                self.payment_status = PaymentStatus.REFUNDED.value
            self.updated_at = now
            self._guard_payment_status(previous_payment_status)

        event_cls, stamp = (
            (OrderCancelled, "cancelled_at") if target == OrderStatus.CANCELLED else (OrderReturned, "returned_at")
        )
        self.raise_(
            event_cls(
                order_id=str(self.id),
                user_id=str(self.user_id),
                product_id=str(self.product_id),
                quantity=self.quantity,
                reason=reason,
                refunded=refund,
                **{stamp: now},
            )
        )

        if refund:
            self.raise_(
                OrderRefunded(
                    order_id=str(self.id),
                    user_id=str(self.user_id),
                    amount=amount,
                    payment_method=self.payment_method,
                    refunded_at=now,
                )
            )

        return Settlement(status=self.status, refunded=refund, refunded_amount=amount)
