"""Notifier that only records notices in the application log."""

import structlog

from commerce.notifier.port import Notifier, OrderNotice

logger = structlog.get_logger(__name__)


class LoggingNotifier(Notifier):
    def notify(self, notice: OrderNotice) -> None:
        logger.info(
            "Order notice",
            order_id=notice.order_id,
            user_id=notice.user_id,
            kind=notice.kind,
            tracking_number=notice.tracking_number,
        )
