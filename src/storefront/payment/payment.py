"""Payment aggregate and the payment vocabulary shared with orders.

A ``Payment`` is the storefront's record of a gateway payment that has been
verified and captured. Orders paid through the gateway point at it by the
gateway's ``payment_id``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "Cash On Delivery"
    RAZORPAY = "Razorpay"
    WALLET = "Wallet"


class PaymentStatus(Enum):
    PENDING = "Pending"
    SUCCESSFUL = "Successful"
    REFUNDED = "Refunded"


@storefront.aggregate
class Payment:
    payment_id = String(required=True, max_length=100)
    user_id = Identifier()
    amount = Float(min_value=0.0)
    status = String(max_length=50, default=PaymentStatus.PENDING.value)
    method = String(max_length=50)
    gateway = String(max_length=50, default="Razorpay")
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def record(cls, payment_id, amount, method, status, gateway="Razorpay", user_id=None):
        now = datetime.now(UTC)
        return cls(
            payment_id=payment_id,
            user_id=user_id,
            amount=amount,
            method=method,
            status=status,
            gateway=gateway,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_successful(self) -> bool:
        return self.status == PaymentStatus.SUCCESSFUL.value

    def confirm(self, amount, method):
        self.amount = amount
        self.method = method
        self.status = PaymentStatus.SUCCESSFUL.value
        self.updated_at = datetime.now(UTC)


@storefront.repository(part_of=Payment)
class PaymentRepository:
    def find_by_payment_id(self, payment_id) -> Payment | None:
        return self._dao.query.filter(payment_id=str(payment_id)).all().first
