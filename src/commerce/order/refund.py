"""Refund recording — command and handler."""

import json

from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import Order


@commerce.command(part_of="Order")
class ApplyRefund:
    """Create or update the order's refund.

    ``create_only`` makes the command a no-op for orders that already carry a
    refund record (first writer wins).
    """

    order_id = Identifier(required=True)
    refund_id = String(required=True, max_length=255)
    amount = Float(min_value=0.0)
    status = String(required=True, max_length=50)
    created_at = DateTime()
    processed_at = DateTime()
    notes = Text()  # JSON dict
    create_only = Boolean(default=False)


@commerce.command_handler(part_of=Order)
class ApplyRefundHandler:
    @handle(ApplyRefund)
    def apply_refund(self, command):
        """Returns True when the refund record or the order changed."""
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.apply_refund(
            refund_id=command.refund_id,
            amount=command.amount,
            status=command.status,
            created_at=command.created_at,
            processed_at=command.processed_at,
            notes=json.loads(command.notes) if command.notes else None,
            create_only=command.create_only,
        )
        if changed:
            repo.add(order)
        return changed
