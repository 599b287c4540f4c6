"""Payment gateway port (abstract interface).

Adapters translate the gateway's own API into ``GatewayPayment`` snapshots so
that payment verification never depends on a particular SDK.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class GatewayPayment:
    """A payment as the gateway reports it. ``amount`` is in major currency units."""

    payment_id: str
    status: str
    amount: float
    method: str | None = None
    captured: bool = False


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """Return the gateway's current view of a payment."""
        ...

    @abstractmethod
    def capture_payment(self, payment_id: str, amount: float) -> GatewayPayment:
        """Capture an authorized payment for ``amount``."""
        ...
