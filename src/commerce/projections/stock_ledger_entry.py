"""Stock ledger entries — append-only, one row per StockChanged event.

Rows are keyed by ``{product_id}-{sequence}`` so a redelivered event lands on
the row it already wrote instead of duplicating the audit trail.
"""

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.stock.events import StockChanged
from commerce.stock.product import Product


@commerce.projection
class StockLedgerEntry:
    entry_id = Identifier(identifier=True, required=True)
    product_id = Identifier(required=True)
    sequence = Integer(required=True)
    variant_index = Integer(required=True)
    size = String(required=True)
    color = String(required=True)
    change_type = String(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    order_id = Identifier()
    reason = String(required=True)
    notes = Text()
    recorded_at = DateTime(required=True)


def entry_id_for(product_id, sequence) -> str:
    return f"{product_id}-{sequence}"


@commerce.projector(projector_for=StockLedgerEntry, aggregates=[Product])
class StockLedgerEntryProjector:
    @on(StockChanged)
    def on_stock_changed(self, event: StockChanged):
        repo = current_domain.repository_for(StockLedgerEntry)
        entry_id = entry_id_for(event.product_id, event.sequence)
        try:
            repo.get(entry_id)
            return  # Already written; entries are never rewritten
        except ObjectNotFoundError:
            pass

        repo.add(
            StockLedgerEntry(
                entry_id=entry_id,
                product_id=event.product_id,
                sequence=event.sequence,
                variant_index=event.variant_index,
                size=event.size,
                color=event.color,
                change_type=event.change_type,
                quantity=event.quantity,
                previous_stock=event.previous_stock,
                new_stock=event.new_stock,
                order_id=event.order_id,
                reason=event.reason,
                notes=event.notes,
                recorded_at=event.recorded_at,
            )
        )
