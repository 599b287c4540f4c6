"""Decide the initial payment status of an order from its payment method."""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.errors import PaymentRejected
from storefront.payment.payment import Payment, PaymentMethod, PaymentStatus


def parse_payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError({"payment_method": [f"Unknown payment method '{value}'. Expected one of: {allowed}"]}) from None


def resolve_payment_status(payment_method, payment_id=None) -> PaymentStatus:
    """Cash On Delivery is collected later, Wallet is settled at checkout, and
    gateway payments must already be verified and successful."""
    method = parse_payment_method(payment_method)

    if method == PaymentMethod.CASH_ON_DELIVERY:
        return PaymentStatus.PENDING
    if method == PaymentMethod.WALLET:
        return PaymentStatus.SUCCESSFUL

    if not payment_id:
        raise ValidationError({"payment_id": ["A payment id is required for Razorpay payments"]})

    payment = current_domain.repository_for(Payment).find_by_payment_id(payment_id)
    if payment is None:
        raise ObjectNotFoundError({"payment_id": [f"Payment {payment_id} not found"]})
    if not payment.is_successful:
        raise PaymentRejected(payment_id, payment.status)

    return PaymentStatus.SUCCESSFUL
