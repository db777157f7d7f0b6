"""Order-level writes shared by the verification endpoint and the webhook processor.

Both paths may confirm the same payment concurrently. Every write here holds
the order's lock for the whole load-check-commit, so the second confirmation
always observes the first one's result.
"""

import json

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.errors import OrderNotFound
from commerce.order.order import Order
from commerce.order.payment import MarkOrderPaid, RecordPaymentIntent
from commerce.order.refund import ApplyRefund
from commerce.utils.commands import process_serialized
from commerce.utils.locks import KeyedLocks

order_locks = KeyedLocks()


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        raise OrderNotFound(order_id) from None


def confirm_payment(order_id, external_id, status, source, update_time=None, payer_email=None) -> bool:
    """Mark the order paid. Returns False when it already was."""
    command = MarkOrderPaid(
        order_id=str(order_id),
        external_id=external_id,
        status=status,
        update_time=update_time,
        payer_email=payer_email,
        source=source,
    )
    try:
        return process_serialized(command, order_locks, order_id)
    except ObjectNotFoundError:
        raise OrderNotFound(order_id) from None


def record_intent(order_id, intent_id, amount, currency) -> None:
    command = RecordPaymentIntent(
        order_id=str(order_id),
        intent_id=intent_id,
        amount=amount,
        currency=currency,
    )
    process_serialized(command, order_locks, order_id)


def record_refund(
    order_id,
    refund_id,
    amount,
    status,
    created_at=None,
    processed_at=None,
    notes=None,
    create_only=False,
) -> bool:
    """Create or update the order's refund. Returns True when anything changed."""
    command = ApplyRefund(
        order_id=str(order_id),
        refund_id=refund_id,
        amount=amount,
        status=status,
        created_at=created_at,
        processed_at=processed_at,
        notes=json.dumps(notes) if isinstance(notes, dict) else notes,
        create_only=create_only,
    )
    try:
        return process_serialized(command, order_locks, order_id)
    except ObjectNotFoundError:
        raise OrderNotFound(order_id) from None
