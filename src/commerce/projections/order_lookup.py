"""Order lookup — secondary keys for finding an order.

Tracking numbers, gateway order ids and gateway payment ids all resolve to an
order id here; the Order itself is then loaded from its event stream.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.events import (
    OrderCancelled,
    OrderCompleted,
    OrderCreated,
    OrderDelivered,
    OrderPaid,
    OrderProcessing,
    OrderRefunded,
    OrderShipped,
    PaymentIntentRecorded,
)
from commerce.order.order import Order, OrderStatus


@commerce.projection
class OrderLookup:
    order_id = Identifier(identifier=True, required=True)
    user_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=30)
    status = String(required=True)
    total_price = Float(default=0.0)
    is_paid = Boolean(default=False)
    gateway_order_id = String(max_length=255)
    payment_id = String(max_length=255)
    created_at = DateTime()
    updated_at = DateTime()


def find_order_id(**criteria):
    """Return the id of the first order matching ``criteria``, or None."""
    records = current_domain.repository_for(OrderLookup)._dao.query.filter(**criteria).all().items
    return str(records[0].order_id) if records else None


def _update(order_id, updated_at, **changes):
    repo = current_domain.repository_for(OrderLookup)
    try:
        record = repo.get(order_id)
    except ObjectNotFoundError:
        return
    for name, value in changes.items():
        setattr(record, name, value)
    record.updated_at = updated_at
    repo.add(record)


@commerce.projector(projector_for=OrderLookup, aggregates=[Order])
class OrderLookupProjector:
    @on(OrderCreated)
    def on_order_created(self, event: OrderCreated):
        current_domain.repository_for(OrderLookup).add(
            OrderLookup(
                order_id=event.order_id,
                user_id=event.user_id,
                tracking_number=event.tracking_number,
                status=OrderStatus.PENDING.value,
                total_price=event.total_price,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(PaymentIntentRecorded)
    def on_payment_intent_recorded(self, event: PaymentIntentRecorded):
        _update(event.order_id, event.recorded_at, gateway_order_id=event.intent_id)

    @on(OrderPaid)
    def on_order_paid(self, event: OrderPaid):
        _update(event.order_id, event.paid_at, is_paid=True, payment_id=event.external_id)

    @on(OrderProcessing)
    def on_order_processing(self, event: OrderProcessing):
        _update(event.order_id, event.changed_at, status=OrderStatus.PROCESSING.value)

    @on(OrderShipped)
    def on_order_shipped(self, event: OrderShipped):
        _update(event.order_id, event.changed_at, status=OrderStatus.SHIPPED.value)

    @on(OrderDelivered)
    def on_order_delivered(self, event: OrderDelivered):
        _update(event.order_id, event.changed_at, status=OrderStatus.DELIVERED.value)

    @on(OrderCompleted)
    def on_order_completed(self, event: OrderCompleted):
        _update(event.order_id, event.changed_at, status=OrderStatus.COMPLETED.value)

    @on(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled):
        _update(event.order_id, event.changed_at, status=OrderStatus.CANCELLED.value)

    @on(OrderRefunded)
    def on_order_refunded(self, event: OrderRefunded):
        _update(event.order_id, event.changed_at, status=OrderStatus.REFUNDED.value)
