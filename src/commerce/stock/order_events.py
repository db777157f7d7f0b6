"""Stock reacts to Order events — restocking cancelled and refunded orders.

Restoration is keyed by order id and reason: if the ledger already holds
``add`` entries for this order with the same reason, a redelivered event is
acknowledged without restocking again.
"""

import json

import structlog
from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.order.events import OrderCancelled, OrderRefunded
from commerce.stock.ledger import StockLedger
from commerce.stock.lines import StockLine
from commerce.stock.product import ChangeType, Product

logger = structlog.get_logger(__name__)


def _restock(order_id, items, reason):
    ledger = StockLedger()
    if ledger.has_entries(order_id, ChangeType.ADD, reason):
        logger.info("Stock already restored for order", order_id=str(order_id), reason=reason)
        return

    rows = json.loads(items) if isinstance(items, str) else (items or [])
    lines = [
        StockLine(
            product_id=row["product_id"],
            size=row["size"],
            color=row["color"],
            quantity=row["quantity"],
        )
        for row in rows
    ]
    ledger.restore(lines, order_id, reason)
    logger.info("Stock restored for order", order_id=str(order_id), reason=reason, items=len(lines))


@commerce.event_handler(part_of=Product, stream_category="commerce::order")
class OrderStockEventHandler:
    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        if not event.restock:
            logger.info("Cancelled order needs no restock", order_id=str(event.order_id))
            return
        _restock(event.order_id, event.items, "Order cancelled")

    @handle(OrderRefunded)
    def on_order_refunded(self, event: OrderRefunded) -> None:
        if not event.restock:
            logger.info("Refunded order was already restocked on cancellation", order_id=str(event.order_id))
            return
        _restock(event.order_id, event.items, "Order refunded")
