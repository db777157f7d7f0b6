"""Fulfillment progress — status updates, delivery and tracking entries."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import Order, OrderStatus


@commerce.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    location = String(max_length=255)
    description = String(max_length=500)
    carrier = String(max_length=100)
    estimated_delivery = String(max_length=30)


@commerce.command(part_of="Order")
class MarkOrderDelivered:
    order_id = Identifier(required=True)
    location = String(max_length=255)


@commerce.command(part_of="Order")
class AppendTracking:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=50)
    location = String(max_length=255)
    description = String(max_length=500)


@commerce.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.advance_to(
            command.status,
            location=command.location,
            description=command.description,
            carrier=command.carrier,
            estimated_delivery=command.estimated_delivery,
        ):
            repo.add(order)
        return order.status

    @handle(MarkOrderDelivered)
    def mark_delivered(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if order.mark_delivered(location=command.location):
            repo.add(order)
        return order.status

    @handle(AppendTracking)
    def append_tracking(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.append_tracking(
            status=command.status,
            location=command.location,
            description=command.description,
        )
        repo.add(order)
        return order.status
