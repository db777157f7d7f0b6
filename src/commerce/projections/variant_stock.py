"""Variant stock levels — current stock per variant with product metadata.

Backs the low-stock and out-of-stock listings so they can be filtered and
sorted without loading every Product stream.
"""

import json

import structlog
from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.stock.events import ProductRegistered, StockChanged
from commerce.stock.product import Product

logger = structlog.get_logger(__name__)


@commerce.projection
class VariantStockLevel:
    level_id = Identifier(identifier=True, required=True)
    product_id = Identifier(required=True)
    variant_index = Integer(required=True)
    title = String(required=True)
    category = String()
    size = String(required=True)
    color = String(required=True)
    price = Float(default=0.0)
    stock = Integer(default=0)
    updated_at = DateTime()


def level_id_for(product_id, variant_index) -> str:
    return f"{product_id}-{variant_index}"


@commerce.projector(projector_for=VariantStockLevel, aggregates=[Product])
class VariantStockLevelProjector:
    @on(ProductRegistered)
    def on_product_registered(self, event: ProductRegistered):
        repo = current_domain.repository_for(VariantStockLevel)
        rows = json.loads(event.variants) if isinstance(event.variants, str) else []
        for row in rows:
            repo.add(
                VariantStockLevel(
                    level_id=level_id_for(event.product_id, row["variant_index"]),
                    product_id=event.product_id,
                    variant_index=row["variant_index"],
                    title=event.title,
                    category=event.category,
                    size=row["size"],
                    color=row["color"],
                    price=row.get("price", 0.0),
                    stock=0,
                    updated_at=event.registered_at,
                )
            )

    @on(StockChanged)
    def on_stock_changed(self, event: StockChanged):
        repo = current_domain.repository_for(VariantStockLevel)
        try:
            level = repo.get(level_id_for(event.product_id, event.variant_index))
        except ObjectNotFoundError:
            logger.warning(
                "Stock change for unknown variant level",
                product_id=str(event.product_id),
                variant_index=event.variant_index,
            )
            return

        level.stock = event.new_stock
        level.updated_at = event.recorded_at
        repo.add(level)
