"""Coupon aggregate with per-checkout redemption records.

Each checkout that uses a coupon appends one ``CouponRedemption`` listing the
orders it produced. Cancelling or returning one of those orders releases it
from the redemption; once no order remains the redemption is ``Reverted`` and
the customer no longer counts as having taken the coupon.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String, Text

from storefront.domain import storefront


class RedemptionStatus(Enum):
    APPLIED = "Applied"
    REVERTED = "Reverted"


@storefront.entity(part_of="Coupon")
class CouponRedemption:
    user_id = Identifier(required=True)
    order_ids = Text()  # JSON array of order ids still holding the coupon
    status = String(choices=RedemptionStatus, default=RedemptionStatus.APPLIED.value)
    redeemed_at = DateTime()
    reverted_at = DateTime()

    def active_order_ids(self) -> list[str]:
        return json.loads(self.order_ids) if self.order_ids else []


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50)
    discount = Float(default=0.0, min_value=0.0)
    redemptions = HasMany(CouponRedemption)
    created_at = DateTime()

    @classmethod
    def create(cls, code, discount):
        return cls(code=code.strip().upper(), discount=discount, created_at=datetime.now(UTC))

    @property
    def users_taken(self) -> list[str]:
        """Distinct customers holding an applied redemption, in redemption order."""
        users = []
        for redemption in self.redemptions:
            if redemption.status == RedemptionStatus.APPLIED.value and str(redemption.user_id) not in users:
                users.append(str(redemption.user_id))
        return users

    def redeem(self, user_id, order_ids) -> CouponRedemption:
        if not order_ids:
            raise ValidationError({"order_ids": ["A redemption needs at least one order"]})

        redemption = CouponRedemption(
            user_id=user_id,
            order_ids=json.dumps([str(order_id) for order_id in order_ids]),
            status=RedemptionStatus.APPLIED.value,
            redeemed_at=datetime.now(UTC),
        )
        self.add_redemptions(redemption)
        return redemption

    def release(self, order_id) -> bool:
        """Drop ``order_id`` from whichever applied redemption holds it.

        Returns True when the order was found and released.
        """
        for redemption in self.redemptions:
            if redemption.status != RedemptionStatus.APPLIED.value:
                continue
            remaining = redemption.active_order_ids()
            if str(order_id) not in remaining:
                continue

            remaining.remove(str(order_id))
            redemption.order_ids = json.dumps(remaining)
            if not remaining:
                redemption.status = RedemptionStatus.REVERTED.value
                redemption.reverted_at = datetime.now(UTC)
            return True
        return False


@storefront.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code) -> Coupon | None:
        return self._dao.query.filter(code=code.strip().upper()).all().first

    def get_by_code(self, code) -> Coupon:
        coupon = self.find_by_code(code)
        if coupon is None:
            raise ObjectNotFoundError({"coupon_code": [f"Coupon {code} not found"]})
        return coupon
