"""Domain events for the Order aggregate.

Status transitions and tracking updates are separate events: a transition is
always followed by the ``TrackingUpdated`` that records it in the order's
tracking history.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from commerce.domain import commerce


@commerce.event(part_of="Order")
class OrderCreated:
    """An order was placed at checkout with a snapshot of its prices."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts with ids
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True)
    items_price = Float(required=True)
    tax_price = Float(required=True)
    shipping_price = Float(required=True)
    total_price = Float(required=True)
    tracking_number = String(required=True)
    carrier = String(required=True)
    estimated_delivery = String()
    created_at = DateTime(required=True)


@commerce.event(part_of="Order")
class PaymentIntentRecorded:
    """A payment intent was opened with the gateway for this order."""

    __version__ = 1

    order_id = Identifier(required=True)
    intent_id = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    attempt = Integer(required=True)
    recorded_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderPaid:
    """Payment for the order was confirmed. Raised at most once per order."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    external_id = String(required=True)
    payment_status = String(required=True)
    update_time = String()
    payer_email = String()
    source = String(required=True)  # "webhook" or "verification"
    total_price = Float(required=True)
    paid_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    tracking_number = String(required=True)
    carrier = String(required=True)
    estimated_delivery = String()
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCompleted:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before delivery.

    ``restock`` is False when the stock was already returned by the checkout
    saga that cancelled the order.
    """

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    restock = Boolean(default=True)
    items = Text(required=True)  # JSON: list of item dicts
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class OrderRefunded:
    """A processed refund moved a paid order to Refunded."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    refund_id = String(required=True)
    amount = Float(required=True)
    restock = Boolean(default=True)
    items = Text(required=True)  # JSON: list of item dicts
    changed_at = DateTime(required=True)


@commerce.event(part_of="Order")
class TrackingUpdated:
    """A tracking entry was appended to the order's history."""

    __version__ = 1

    order_id = Identifier(required=True)
    status = String(required=True)
    location = String()
    description = String()
    timestamp = DateTime(required=True)


@commerce.event(part_of="Order")
class RefundRecorded:
    """The order's refund record was created."""

    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String(required=True)
    amount = Float(required=True)
    status = String(required=True)
    notes = Text()  # JSON dict
    created_at = DateTime(required=True)
    processed_at = DateTime()


@commerce.event(part_of="Order")
class RefundStatusUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = String(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    processed_at = DateTime()
