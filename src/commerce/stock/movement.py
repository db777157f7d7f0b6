"""Stock movements — commands and handler.

Every command here writes exactly one ledger entry for one variant. Batches
spanning several variants are orchestrated by ``commerce.stock.ledger``.
"""

from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.stock.product import ChangeType, Product


@commerce.command(part_of="Product")
class RecordStockMovement:
    """Deduct, add, reserve or release a quantity of one variant."""

    product_id = Identifier(required=True)
    size = String(required=True, max_length=20)
    color = String(required=True, max_length=50)
    change_type = String(required=True, choices=ChangeType)
    quantity = Integer(required=True, min_value=1)
    order_id = Identifier()
    reason = String(required=True, max_length=255)
    notes = Text()


@commerce.command(part_of="Product")
class AdjustStock:
    """Set one variant's stock to a counted value."""

    product_id = Identifier(required=True)
    size = String(required=True, max_length=20)
    color = String(required=True, max_length=50)
    new_stock = Integer(required=True, min_value=0)
    reason = String(required=True, max_length=255)
    notes = Text()


@commerce.command_handler(part_of=Product)
class StockMovementHandler:
    @handle(RecordStockMovement)
    def record_movement(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        new_stock = product.record_movement(
            size=command.size,
            color=command.color,
            change_type=command.change_type,
            quantity=command.quantity,
            order_id=command.order_id,
            reason=command.reason,
            notes=command.notes,
        )
        repo.add(product)
        return new_stock

    @handle(AdjustStock)
    def adjust_stock(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        new_stock = product.adjust(
            size=command.size,
            color=command.color,
            new_stock=command.new_stock,
            reason=command.reason,
            notes=command.notes,
        )
        repo.add(product)
        return new_stock
