"""Fake notifier — records notices in memory for test assertions."""

from commerce.notifier.port import Notifier, OrderNotice


class FakeNotifier(Notifier):
    def __init__(self):
        self.sent: list[OrderNotice] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, notice: OrderNotice) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        self.sent.append(notice)

    def kinds(self, order_id=None) -> list[str]:
        return [n.kind for n in self.sent if order_id is None or n.order_id == str(order_id)]

    def reset(self):
        """Clear sent notices (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
