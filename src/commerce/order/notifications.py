"""Customer notifications for order milestones.

Runs after the state change has been committed. Notifier failures are logged
and dropped: they must never unwind a payment or a status change.
"""

import json

import structlog
from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.notifier import get_notifier
from commerce.notifier.port import OrderNotice
from commerce.order.events import OrderCancelled, OrderDelivered, OrderPaid, OrderShipped
from commerce.order.order import Order

logger = structlog.get_logger(__name__)


def _dispatch(notice: OrderNotice) -> None:
    try:
        get_notifier().notify(notice)
    except Exception:
        logger.exception(
            "Order notification failed",
            order_id=notice.order_id,
            kind=notice.kind,
        )


@commerce.event_handler(part_of=Order)
class OrderNotificationHandler:
    """Sends one notice per milestone event."""

    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        _dispatch(
            OrderNotice(
                order_id=str(event.order_id),
                user_id=str(event.user_id),
                kind="paid",
                total_price=event.total_price,
            )
        )

    @handle(OrderShipped)
    def on_order_shipped(self, event: OrderShipped) -> None:
        _dispatch(
            OrderNotice(
                order_id=str(event.order_id),
                user_id=str(event.user_id),
                kind="shipped",
                tracking_number=event.tracking_number,
                detail=event.carrier,
            )
        )

    @handle(OrderDelivered)
    def on_order_delivered(self, event: OrderDelivered) -> None:
        _dispatch(
            OrderNotice(
                order_id=str(event.order_id),
                user_id=str(event.user_id),
                kind="delivered",
            )
        )

    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        item_count = len(json.loads(event.items)) if event.items else 0
        _dispatch(
            OrderNotice(
                order_id=str(event.order_id),
                user_id=str(event.user_id),
                kind="cancelled",
                detail=f"{event.reason} ({item_count} items)",
            )
        )
