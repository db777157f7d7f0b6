"""Order aggregate (Event Sourced) — payment, fulfillment and refund state.

State Machine:
    Pending → Processing → Shipped → Delivered → Completed
    Cancelled  (from Pending, Processing, Shipped)
    Refunded   (from any state once paid, when the refund is processed)

Forward moves may skip states; moving to an earlier state is rejected.
Payment is orthogonal to the status: ``mark_paid`` can happen in any state
and happens at most once.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from commerce.domain import commerce
from commerce.errors import RefundExceedsTotal
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
    RefundRecorded,
    RefundStatusUpdated,
    TrackingUpdated,
)
from commerce.stock.lines import StockLine


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "Cash on Delivery"
    RAZORPAY = "Razorpay"


GATEWAY_PAYMENT_METHODS = {PaymentMethod.RAZORPAY}

REFUND_PROCESSED = "processed"
DEFAULT_CARRIER = "Standard Shipping"

# Position on the forward path; Cancelled and Refunded sit outside it
_FORWARD_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.DELIVERED: 3,
    OrderStatus.COMPLETED: 4,
}

_CANCELLABLE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@commerce.value_object(part_of="Order")
class ShippingAddress:
    full_name = String(required=True, max_length=100)
    address = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=20)


@commerce.value_object(part_of="Order")
class PaymentResult:
    """What the gateway told us when payment was confirmed."""

    external_id = String(required=True, max_length=255)
    status = String(required=True, max_length=50)
    update_time = String(max_length=50)
    payer_email = String(max_length=255)


@commerce.value_object(part_of="Order")
class Refund:
    refund_id = String(required=True, max_length=255)
    amount = Float(required=True, min_value=0.0)
    status = String(required=True, max_length=50)
    created_at = DateTime()
    processed_at = DateTime()
    notes = Text()  # JSON dict


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderItem:
    """A purchased variant with the unit price snapshotted at checkout."""

    product_id = Identifier(required=True)
    title = String(max_length=255)
    size = String(required=True, max_length=20)
    color = String(required=True, max_length=50)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)

    @property
    def variant_key(self):
        return (self.size, self.color)


@commerce.entity(part_of="Order")
class TrackingEvent:
    status = String(required=True, max_length=50)
    location = String(max_length=255)
    description = String(max_length=500)
    timestamp = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@commerce.aggregate(is_event_sourced=True)
class Order:
    user_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(choices=PaymentMethod, required=True)
    items_price = Float(default=0.0)
    tax_price = Float(default=0.0)
    shipping_price = Float(default=0.0)
    total_price = Float(default=0.0)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    payment_result = ValueObject(PaymentResult)
    gateway_order_id = String(max_length=255)
    payment_attempts = Integer(default=0)
    refund = ValueObject(Refund)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    tracking_number = String(max_length=30)
    tracking_history = HasMany(TrackingEvent)
    carrier = String(max_length=100, default=DEFAULT_CARRIER)
    estimated_delivery = String(max_length=30)  # ISO date string
    is_delivered = Boolean(default=False)
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        items,
        shipping_address,
        payment_method,
        prices,
        tracking_number,
        carrier=None,
        estimated_delivery=None,
    ):
        """Create an order in Pending with the caller's price snapshot.

        Prices are taken as given; the catalog owns price authority. The total
        is derived from its parts and a supplied total that disagrees is
        rejected.

        Args:
            user_id: The purchasing user.
            items: List of dicts with product_id, size, color, quantity,
                   unit_price and optional title.
            shipping_address: Dict matching ShippingAddress.
            payment_method: One of PaymentMethod's values.
            prices: Dict with items_price, tax_price, shipping_price and
                    optional total_price.
            tracking_number: A unique, pre-allocated tracking number.
        """
        if not items:
            raise ValidationError({"items": ["Order must contain at least one item"]})
        if payment_method not in {m.value for m in PaymentMethod}:
            raise ValidationError({"payment_method": [f"Unsupported payment method {payment_method}"]})

        items_price = float(prices.get("items_price") or 0.0)
        tax_price = float(prices.get("tax_price") or 0.0)
        shipping_price = float(prices.get("shipping_price") or 0.0)
        if min(items_price, tax_price, shipping_price) < 0:
            raise ValidationError({"prices": ["Prices cannot be negative"]})

        total_price = round(items_price + tax_price + shipping_price, 2)
        supplied_total = prices.get("total_price")
        if supplied_total is not None and abs(float(supplied_total) - total_price) > 0.01:
            raise ValidationError(
                {"total_price": [f"Total {supplied_total} does not equal items + tax + shipping ({total_price})"]}
            )

        # Pre-generate item IDs for deterministic replay
        items_with_ids = [{**item, "id": str(uuid4())} for item in items]

        order = cls._create_new()
        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                user_id=str(user_id),
                items=json.dumps(items_with_ids),
                shipping_address=json.dumps(shipping_address),
                payment_method=payment_method,
                items_price=items_price,
                tax_price=tax_price,
                shipping_price=shipping_price,
                total_price=total_price,
                tracking_number=tracking_number,
                carrier=carrier or DEFAULT_CARRIER,
                estimated_delivery=estimated_delivery,
                created_at=datetime.now(UTC),
            )
        )
        order._track(OrderStatus.PENDING.value, description="Order placed successfully")
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def uses_gateway(self) -> bool:
        return PaymentMethod(self.payment_method) in GATEWAY_PAYMENT_METHODS

    @property
    def refund_processed(self) -> bool:
        return self.refund is not None and self.refund.status == REFUND_PROCESSED

    def stock_lines(self) -> list[StockLine]:
        return [
            StockLine(
                product_id=str(item.product_id),
                size=item.size,
                color=item.color,
                quantity=item.quantity,
            )
            for item in self.items
        ]

    def _items_json(self):
        return json.dumps(
            [
                {
                    "product_id": str(item.product_id),
                    "size": item.size,
                    "color": item.color,
                    "quantity": item.quantity,
                }
                for item in self.items
            ]
        )

    def _track(self, status, location=None, description=None):
        self.raise_(
            TrackingUpdated(
                order_id=str(self.id),
                status=status,
                location=location,
                description=description,
                timestamp=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment_intent(self, intent_id, amount, currency):
        """Remember the gateway intent opened for this order."""
        if self.is_paid:
            raise ValidationError({"order": ["Order is already paid"]})
        if OrderStatus(self.status) in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise ValidationError({"status": [f"Cannot take payment for a {self.status} order"]})

        self.raise_(
            PaymentIntentRecorded(
                order_id=str(self.id),
                intent_id=intent_id,
                amount=amount,
                currency=currency,
                attempt=(self.payment_attempts or 0) + 1,
                recorded_at=datetime.now(UTC),
            )
        )

    def mark_paid(self, external_id, status, update_time=None, payer_email=None, source="webhook"):
        """Record payment confirmation.

        Returns False without raising anything when the order is already paid:
        the first confirmation's result and timestamp are kept, and nothing
        downstream fires a second time.
        """
        if self.is_paid:
            return False
        if not external_id:
            raise ValidationError({"external_id": ["Payment reference is required"]})

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                user_id=str(self.user_id),
                external_id=external_id,
                payment_status=status,
                update_time=update_time,
                payer_email=payer_email,
                source=source,
                total_price=self.total_price,
                paid_at=datetime.now(UTC),
            )
        )
        return True

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def advance_to(self, target, location=None, description=None, carrier=None, estimated_delivery=None):
        """Move the order to ``target``.

        Returns False when the order is already in ``target``. Raises
        ValidationError for backward moves and for moves out of Cancelled
        or Refunded.
        """
        target = OrderStatus(target)
        current = OrderStatus(self.status)
        if target == current:
            return False

        if target == OrderStatus.CANCELLED:
            self.cancel(reason=description or "Cancelled")
            return True
        if target == OrderStatus.REFUNDED:
            if not self.is_paid or not self.refund_processed:
                raise ValidationError({"status": ["Order can only be Refunded once its refund is processed"]})
            self._mark_refunded()
            return True

        if current in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            raise ValidationError({"status": [f"Cannot move a {current.value} order to {target.value}"]})
        if _FORWARD_RANK[target] < _FORWARD_RANK[current]:
            raise ValidationError({"status": [f"Cannot move order back from {current.value} to {target.value}"]})

        now = datetime.now(UTC)
        if target == OrderStatus.PROCESSING:
            event = OrderProcessing(order_id=str(self.id), previous_status=current.value, changed_at=now)
        elif target == OrderStatus.SHIPPED:
            event = OrderShipped(
                order_id=str(self.id),
                user_id=str(self.user_id),
                previous_status=current.value,
                tracking_number=self.tracking_number,
                carrier=carrier or self.carrier or DEFAULT_CARRIER,
                estimated_delivery=estimated_delivery or self.estimated_delivery,
                changed_at=now,
            )
        elif target == OrderStatus.DELIVERED:
            event = OrderDelivered(
                order_id=str(self.id),
                user_id=str(self.user_id),
                previous_status=current.value,
                changed_at=now,
            )
        else:
            event = OrderCompleted(order_id=str(self.id), previous_status=current.value, changed_at=now)

        self.raise_(event)
        self._track(target.value, location=location, description=description)
        return True

    def mark_delivered(self, location=None):
        return self.advance_to(OrderStatus.DELIVERED, location=location, description="Order delivered")

    def append_tracking(self, status, location=None, description=None):
        """Append a tracking entry.

        A status naming a different order status drives the state machine
        (and is subject to its rules); free-form statuses only append.
        """
        try:
            target = OrderStatus(status)
        except ValueError:
            target = None

        if target is not None and target != OrderStatus(self.status):
            return self.advance_to(target, location=location, description=description)

        self._track(status, location=location, description=description)
        return True

    def cancel(self, reason, restock=True):
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise ValidationError(
                {
                    "status": [
                        f"Cannot cancel order in {current.value} state. "
                        f"Cancellation is only allowed from: "
                        f"{', '.join(s.value for s in _FORWARD_RANK if s in _CANCELLABLE_STATES)}"
                    ]
                }
            )

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                user_id=str(self.user_id),
                previous_status=current.value,
                reason=reason,
                restock=restock,
                items=self._items_json(),
                changed_at=datetime.now(UTC),
            )
        )
        self._track(OrderStatus.CANCELLED.value, description=reason)

    # -------------------------------------------------------------------
    # Refund
    # -------------------------------------------------------------------
    def apply_refund(
        self,
        refund_id,
        amount,
        status,
        created_at=None,
        processed_at=None,
        notes=None,
        create_only=False,
    ):
        """Create or update the order's refund record.

        With ``create_only`` an existing record is left untouched, so the first
        writer wins. A status update for a refund that was never recorded
        creates the record. Once the refund is processed on a paid order the
        order moves to Refunded.

        Returns True when anything changed.
        """
        if amount is not None and amount > self.total_price:
            raise RefundExceedsTotal(amount, self.total_price)

        existing = self.refund
        if existing is None:
            if amount is None:
                raise ValidationError({"amount": ["Refund amount is required"]})
            self.raise_(
                RefundRecorded(
                    order_id=str(self.id),
                    refund_id=refund_id,
                    amount=amount,
                    status=status,
                    notes=json.dumps(notes) if isinstance(notes, dict) else notes,
                    created_at=created_at or datetime.now(UTC),
                    processed_at=processed_at if status == REFUND_PROCESSED else None,
                )
            )
        elif create_only:
            return False
        elif existing.refund_id != refund_id:
            raise ValidationError({"refund_id": [f"Order already has refund {existing.refund_id}"]})
        elif existing.status == status or existing.status == REFUND_PROCESSED:
            return False
        else:
            self.raise_(
                RefundStatusUpdated(
                    order_id=str(self.id),
                    refund_id=refund_id,
                    previous_status=existing.status,
                    status=status,
                    processed_at=processed_at or (datetime.now(UTC) if status == REFUND_PROCESSED else None),
                )
            )

        if self.refund_processed and self.is_paid and OrderStatus(self.status) != OrderStatus.REFUNDED:
            self._mark_refunded()
        return True

    def _mark_refunded(self):
        current = OrderStatus(self.status)
        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                previous_status=current.value,
                refund_id=self.refund.refund_id,
                amount=self.refund.amount,
                restock=current != OrderStatus.CANCELLED,
                items=self._items_json(),
                changed_at=datetime.now(UTC),
            )
        )
        self._track(OrderStatus.REFUNDED.value, description="Refund processed")

    # -------------------------------------------------------------------
    # @apply methods — rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_created(self, event: OrderCreated):
        self.id = event.order_id
        self.user_id = event.user_id
        self.status = OrderStatus.PENDING.value
        self.payment_method = event.payment_method
        self.items_price = event.items_price
        self.tax_price = event.tax_price
        self.shipping_price = event.shipping_price
        self.total_price = event.total_price
        self.tracking_number = event.tracking_number
        self.carrier = event.carrier
        self.estimated_delivery = event.estimated_delivery
        self.is_paid = False
        self.payment_attempts = 0
        self.is_delivered = False
        self.created_at = event.created_at
        self.updated_at = event.created_at

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [OrderItem(**item_data) for item_data in items_data]

        ship_data = json.loads(event.shipping_address) if isinstance(event.shipping_address, str) else {}
        if ship_data:
            self.shipping_address = ShippingAddress(**ship_data)

    @apply
    def _on_payment_intent_recorded(self, event: PaymentIntentRecorded):
        self.gateway_order_id = event.intent_id
        self.payment_attempts = event.attempt
        self.updated_at = event.recorded_at

    @apply
    def _on_order_paid(self, event: OrderPaid):
        self.is_paid = True
        self.paid_at = event.paid_at
        self.payment_result = PaymentResult(
            external_id=event.external_id,
            status=event.payment_status,
            update_time=event.update_time,
            payer_email=event.payer_email,
        )
        self.updated_at = event.paid_at

    @apply
    def _on_order_processing(self, event: OrderProcessing):
        self.status = OrderStatus.PROCESSING.value
        self.updated_at = event.changed_at

    @apply
    def _on_order_shipped(self, event: OrderShipped):
        self.status = OrderStatus.SHIPPED.value
        self.carrier = event.carrier
        if event.estimated_delivery:
            self.estimated_delivery = event.estimated_delivery
        self.updated_at = event.changed_at

    @apply
    def _on_order_delivered(self, event: OrderDelivered):
        self.status = OrderStatus.DELIVERED.value
        self.is_delivered = True
        self.delivered_at = event.changed_at
        self.updated_at = event.changed_at

    @apply
    def _on_order_completed(self, event: OrderCompleted):
        self.status = OrderStatus.COMPLETED.value
        if not self.is_delivered:
            self.is_delivered = True
            self.delivered_at = event.changed_at
        self.updated_at = event.changed_at

    @apply
    def _on_order_cancelled(self, event: OrderCancelled):
        self.status = OrderStatus.CANCELLED.value
        self.updated_at = event.changed_at

    @apply
    def _on_order_refunded(self, event: OrderRefunded):
        self.status = OrderStatus.REFUNDED.value
        self.updated_at = event.changed_at

    @apply
    def _on_tracking_updated(self, event: TrackingUpdated):
        self.add_tracking_history(
            TrackingEvent(
                status=event.status,
                location=event.location,
                description=event.description,
                timestamp=event.timestamp,
            )
        )
        self.updated_at = event.timestamp

    @apply
    def _on_refund_recorded(self, event: RefundRecorded):
        self.refund = Refund(
            refund_id=event.refund_id,
            amount=event.amount,
            status=event.status,
            created_at=event.created_at,
            processed_at=event.processed_at,
            notes=event.notes,
        )

    @apply
    def _on_refund_status_updated(self, event: RefundStatusUpdated):
        self.refund = Refund(
            refund_id=self.refund.refund_id,
            amount=self.refund.amount,
            status=event.status,
            created_at=self.refund.created_at,
            processed_at=event.processed_at or self.refund.processed_at,
            notes=self.refund.notes,
        )
