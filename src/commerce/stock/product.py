"""Product aggregate (Event Sourced) — owner of variant stock.

A product's event stream is its stock ledger. Every quantity change is a
``StockChanged`` event carrying the variant, the change type, and the
previous/new counts; the ``stock`` on each Variant is only the cached result
of replaying those events.

Sign convention:
    deduct, reserve  → subtract ``quantity``
    add, release     → add ``quantity``
    adjust           → set to an absolute count; ``quantity`` is the distance
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Integer, String

from commerce.domain import commerce
from commerce.errors import InsufficientStock
from commerce.stock.events import ProductRegistered, StockChanged
from commerce.stock.lines import Shortfall


class ChangeType(Enum):
    DEDUCT = "deduct"
    ADD = "add"
    ADJUST = "adjust"
    RESERVE = "reserve"
    RELEASE = "release"


DECREMENTS = {ChangeType.DEDUCT, ChangeType.RESERVE}
INCREMENTS = {ChangeType.ADD, ChangeType.RELEASE}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Product")
class Variant:
    """A size/color combination of a product; the unit at which stock is tracked."""

    variant_index = Integer(required=True, min_value=0)
    size = String(required=True, max_length=20)
    color = String(required=True, max_length=50)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)


# ---------------------------------------------------------------------------
# Aggregate Root (Event Sourced)
# ---------------------------------------------------------------------------
@commerce.aggregate(is_event_sourced=True)
class Product:
    title = String(required=True, max_length=255)
    category = String(max_length=100)
    variants = HasMany(Variant)
    ledger_sequence = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def register(cls, title, variants, category=None):
        """Register a product with its variants.

        Variants are created with zero stock. Opening stock is then written
        as an ``add`` ledger entry per variant, so the ledger alone explains
        every unit.

        Args:
            title: Product title shown in stock reports.
            variants: List of dicts with size, color, price and optional stock.
            category: Optional category name.
        """
        if not variants:
            raise ValidationError({"variants": ["At least one variant is required"]})

        seen = set()
        for variant in variants:
            key = (variant["size"], variant["color"])
            if key in seen:
                raise ValidationError({"variants": [f"Duplicate variant {key[0]}/{key[1]}"]})
            seen.add(key)
            if int(variant.get("stock") or 0) < 0:
                raise ValidationError({"stock": ["Opening stock cannot be negative"]})

        product = cls._create_new()
        rows = [
            {
                "id": str(uuid4()),
                "variant_index": index,
                "size": variant["size"],
                "color": variant["color"],
                "price": float(variant.get("price") or 0.0),
            }
            for index, variant in enumerate(variants)
        ]
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                title=title,
                category=category,
                variants=json.dumps(rows),
                registered_at=datetime.now(UTC),
            )
        )

        for variant in variants:
            opening = int(variant.get("stock") or 0)
            if opening > 0:
                product.record_movement(
                    size=variant["size"],
                    color=variant["color"],
                    change_type=ChangeType.ADD,
                    quantity=opening,
                    reason="Initial stock",
                )
        return product

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def find_variant(self, size, color):
        return next(
            (v for v in (self.variants or []) if v.size == size and v.color == color),
            None,
        )

    def available(self, size, color) -> int:
        variant = self.find_variant(size, color)
        return variant.stock if variant else 0

    def shortfall(self, size, color, requested):
        """Return a Shortfall when the variant cannot cover ``requested``, else None."""
        available = self.available(size, color)
        if available >= requested:
            return None
        return Shortfall(
            product_id=str(self.id),
            product_title=self.title,
            size=size,
            color=color,
            requested=requested,
            available=available,
        )

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def record_movement(self, size, color, change_type, quantity, order_id=None, reason="", notes=None):
        """Apply a relative stock change to one variant and write its ledger entry.

        Decrements are checked against the current count before the event is
        raised; the caller's lock and the stream's expected version make the
        check and the write indivisible.

        Returns:
            The variant's new stock.
        """
        change_type = ChangeType(change_type)
        if change_type == ChangeType.ADJUST:
            raise ValidationError({"change_type": ["Use adjust() to set an absolute stock count"]})
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        variant = self.find_variant(size, color)
        if change_type in DECREMENTS:
            shortfall = self.shortfall(size, color, quantity)
            if shortfall is not None:
                raise InsufficientStock([shortfall])
        elif variant is None:
            raise ValidationError({"variant": [f"Variant {size}/{color} does not exist"]})

        previous = variant.stock or 0
        new = previous - quantity if change_type in DECREMENTS else previous + quantity

        self._raise_stock_changed(variant, change_type, quantity, previous, new, order_id, reason, notes)
        return new

    def adjust(self, size, color, new_stock, reason, notes=None):
        """Set a variant's stock to a counted value (admin stock take)."""
        variant = self.find_variant(size, color)
        if variant is None:
            raise ValidationError({"variant": [f"Variant {size}/{color} does not exist"]})
        if new_stock is None or new_stock < 0:
            raise ValidationError({"new_stock": ["Stock cannot be negative"]})

        previous = variant.stock or 0
        if new_stock == previous:
            raise ValidationError({"new_stock": [f"Stock is already {previous}"]})

        self._raise_stock_changed(
            variant,
            ChangeType.ADJUST,
            abs(new_stock - previous),
            previous,
            new_stock,
            None,
            reason,
            notes,
        )
        return new_stock

    def _raise_stock_changed(self, variant, change_type, quantity, previous, new, order_id, reason, notes):
        self.raise_(
            StockChanged(
                product_id=str(self.id),
                sequence=(self.ledger_sequence or 0) + 1,
                variant_index=variant.variant_index,
                size=variant.size,
                color=variant.color,
                change_type=change_type.value,
                quantity=quantity,
                previous_stock=previous,
                new_stock=new,
                order_id=str(order_id) if order_id else None,
                reason=reason or change_type.value,
                notes=json.dumps(notes) if isinstance(notes, dict) else notes,
                recorded_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods — rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_product_registered(self, event: ProductRegistered):
        self.id = event.product_id
        self.title = event.title
        self.category = event.category
        self.ledger_sequence = 0
        self.created_at = event.registered_at
        self.updated_at = event.registered_at

        rows = json.loads(event.variants) if isinstance(event.variants, str) else []
        self.variants = [Variant(stock=0, **row) for row in rows]

    @apply
    def _on_stock_changed(self, event: StockChanged):
        variant = next(
            (v for v in self.variants if v.variant_index == event.variant_index),
            None,
        )
        if variant is not None:
            variant.stock = event.new_stock
        self.ledger_sequence = event.sequence
        self.updated_at = event.recorded_at
