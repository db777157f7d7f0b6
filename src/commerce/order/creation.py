"""Order creation — command and handler."""

import json

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.order.order import Order
from commerce.order.tracking import allocate_tracking_number
from commerce.projections.order_lookup import find_order_id


@commerce.command(part_of="Order")
class CreateOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True, max_length=50)
    items_price = Float(required=True, min_value=0.0)
    tax_price = Float(default=0.0, min_value=0.0)
    shipping_price = Float(default=0.0, min_value=0.0)
    total_price = Float(min_value=0.0)
    carrier = String(max_length=100)
    estimated_delivery = String(max_length=30)


@commerce.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        items = json.loads(command.items) if isinstance(command.items, str) else command.items
        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )

        tracking_number = allocate_tracking_number(lambda candidate: find_order_id(tracking_number=candidate) is not None)

        order = Order.create(
            user_id=command.user_id,
            items=items,
            shipping_address=shipping_address,
            payment_method=command.payment_method,
            prices={
                "items_price": command.items_price,
                "tax_price": command.tax_price or 0.0,
                "shipping_price": command.shipping_price or 0.0,
                "total_price": command.total_price,
            },
            tracking_number=tracking_number,
            carrier=command.carrier,
            estimated_delivery=command.estimated_delivery,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
