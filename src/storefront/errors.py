"""Storefront-specific failures.

All of them are ``ValidationError`` subclasses so the FastAPI exception
handlers registered by Protean render them as 400 responses with the usual
``{"error": {field: [messages]}}`` body.
"""

from protean.exceptions import ValidationError


class InsufficientStock(ValidationError):
    """A requested quantity exceeds the stock on hand."""

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            {
                "stock": [
                    f"Insufficient stock for {product_name}: "
                    f"{available} available, {requested} requested"
                ]
            }
        )


class PaymentRejected(ValidationError):
    """The payment gateway did not confirm the payment."""

    def __init__(self, payment_id: str, gateway_status: str | None):
        self.payment_id = payment_id
        self.gateway_status = gateway_status
        super().__init__({"payment": [f"Payment {payment_id} was not successful (status: {gateway_status})"]})


class InsufficientWalletBalance(ValidationError):
    """A wallet debit would take the balance below zero."""

    def __init__(self, user_id: str, balance: float, amount: float):
        self.user_id = user_id
        self.balance = balance
        self.amount = amount
        super().__init__({"wallet": [f"Insufficient wallet balance: {balance:.2f} available, {amount:.2f} required"]})
