"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements, so the checkout,
verification and webhook paths never depend on a concrete provider.
Amounts crossing this port are in minor currency units (paise, cents).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class IntentResult:
    """A pending-payment object opened with the gateway."""

    intent_id: str
    amount: int
    currency: str
    receipt: str | None = None
    status: str = "created"


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    payment_id: str
    amount: int
    status: str


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    is_configured: bool = True

    @property
    @abstractmethod
    def public_key(self) -> str | None:
        """Key id the client needs to open the gateway's checkout."""
        ...

    @abstractmethod
    def create_intent(self, amount: int, currency: str, receipt: str, notes: dict | None = None) -> IntentResult:
        """Open a payment intent for ``amount`` minor units."""
        ...

    @abstractmethod
    def create_refund(self, payment_id: str, amount: int, notes: dict | None = None) -> RefundResult:
        """Refund ``amount`` minor units of a captured payment."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, raw_body: bytes, signature: str) -> bool:
        """Check a webhook signature over the exact bytes received."""
        ...

    @abstractmethod
    def verify_payment_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        """Check the signature the gateway issued for a completed payment."""
        ...
