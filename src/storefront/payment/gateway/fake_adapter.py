"""In-memory payment gateway for development and testing.

Payments are seeded with ``add_payment`` and behave like gateway payments:
``authorized`` payments move to ``captured`` when captured, anything else is
returned untouched so verification can reject it.
"""

from protean.exceptions import ObjectNotFoundError

from storefront.payment.gateway.port import GatewayPayment, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.payments: dict[str, GatewayPayment] = {}
        self.calls: list[dict] = []

    def add_payment(
        self,
        payment_id: str,
        amount: float,
        status: str = "authorized",
        method: str = "card",
        captured: bool = False,
    ) -> GatewayPayment:
        payment = GatewayPayment(
            payment_id=payment_id,
            status=status,
            amount=amount,
            method=method,
            captured=captured,
        )
        self.payments[payment_id] = payment
        return payment

    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        self.calls.append({"method": "fetch_payment", "payment_id": payment_id})
        if payment_id not in self.payments:
            raise ObjectNotFoundError({"payment_id": [f"Gateway has no payment {payment_id}"]})
        return self.payments[payment_id]

    def capture_payment(self, payment_id: str, amount: float) -> GatewayPayment:
        self.calls.append({"method": "capture_payment", "payment_id": payment_id, "amount": amount})
        payment = self.fetch_payment(payment_id)
        if payment.status != "authorized":
            return payment

        captured = GatewayPayment(
            payment_id=payment_id,
            status="captured",
            amount=amount,
            method=payment.method,
            captured=True,
        )
        self.payments[payment_id] = captured
        return captured
