"""Order cancellation — command and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import Order


@commerce.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    restock = Boolean(default=True)


@commerce.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel(reason=command.reason, restock=command.restock)
        repo.add(order)
