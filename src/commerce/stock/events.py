"""Domain events for the Product aggregate.

``StockChanged`` is the ledger entry: one event per variant touched, carrying
the before and after counts. Replaying a product's stream from zero rebuilds
every variant's stock exactly.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from commerce.domain import commerce


@commerce.event(part_of="Product")
class ProductRegistered:
    """A product and its variants were registered with zero stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    title = String(required=True)
    category = String()
    variants = Text(required=True)  # JSON: list of variant dicts with ids
    registered_at = DateTime(required=True)


@commerce.event(part_of="Product")
class StockChanged:
    """Stock of one variant moved. Immutable ledger entry."""

    __version__ = 1

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
