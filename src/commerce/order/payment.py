"""Payment confirmation — commands and handler.

``MarkOrderPaid`` is the single path by which an order becomes paid, whether
the confirmation came from the client's verification call or from a gateway
webhook. Repeating it is harmless: an already-paid order is left as is.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import Order

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Order")
class RecordPaymentIntent:
    order_id = Identifier(required=True)
    intent_id = String(required=True, max_length=255)
    amount = Float(required=True, min_value=0.0)
    currency = String(required=True, max_length=3)


@commerce.command(part_of="Order")
class MarkOrderPaid:
    order_id = Identifier(required=True)
    external_id = String(required=True, max_length=255)
    status = String(required=True, max_length=50)
    update_time = String(max_length=50)
    payer_email = String(max_length=255)
    source = String(required=True, max_length=20)


@commerce.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(RecordPaymentIntent)
    def record_payment_intent(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_payment_intent(
            intent_id=command.intent_id,
            amount=command.amount,
            currency=command.currency,
        )
        repo.add(order)

    @handle(MarkOrderPaid)
    def mark_paid(self, command):
        """Returns True when this call paid the order, False when it already was."""
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.mark_paid(
            external_id=command.external_id,
            status=command.status,
            update_time=command.update_time,
            payer_email=command.payer_email,
            source=command.source,
        )
        if not changed:
            logger.info(
                "Order already paid, confirmation ignored",
                order_id=str(command.order_id),
                source=command.source,
            )
            return False

        repo.add(order)
        return True
