"""Refund rules for settled orders.

A cancellation or return refunds the customer unless the order was already
refunded, or it was a Cash On Delivery order that was never paid.
"""

from storefront.payment.payment import PaymentMethod, PaymentStatus

SETTLED_STATUSES = {"Cancelled", "Returned"}


def is_refund_eligible(payment_method, previous_payment_status, new_status) -> bool:
    method = PaymentMethod(payment_method)
    previous = PaymentStatus(previous_payment_status)
    status = getattr(new_status, "value", new_status)

    if status not in SETTLED_STATUSES:
        return False
    if previous == PaymentStatus.REFUNDED:
        return False
    return previous == PaymentStatus.SUCCESSFUL or method != PaymentMethod.CASH_ON_DELIVERY


def refund_amount(price, quantity, shipping_cost=None, shipping_price=None, discount=None) -> float:
    """Unit price times quantity plus shipping, falling back to the shipping option's price
    when no shipping cost was stored, less the coupon discount the line was given."""
    shipping = shipping_cost or shipping_price or 0.0
    return round(max(price * quantity + shipping - (discount or 0.0), 0.0), 2)
