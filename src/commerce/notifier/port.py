"""Notifier port — the external collaborator that tells customers about their orders.

Delivery (email, SMS) is outside this system. Callers treat the notifier as
best effort: a failure here never affects payment or stock state.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class OrderNotice:
    order_id: str
    user_id: str
    kind: str  # "paid", "shipped", "delivered", "cancelled"
    total_price: float | None = None
    tracking_number: str | None = None
    detail: str | None = None


class Notifier(ABC):
    @abstractmethod
    def notify(self, notice: OrderNotice) -> None:
        """Hand a notice to the delivery channel. May raise on delivery failure."""
        ...
