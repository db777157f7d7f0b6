"""Stock ledger service — batch operations over Product stock.

Each single-variant movement runs as one command under a per-product lock, so
the read-compare-write on the variant and its ledger entry commit together
and no two writers on the same product interleave inside one process. Across
processes, the event store's expected-version check rejects the slower
writer, which is retried against the fresh stream.

Batches (one order, several variants) are sagas: when an item fails, the
items already applied in that batch are reversed with compensating entries
that carry the same order id, and the original error is re-raised.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.config import low_stock_threshold
from commerce.errors import InsufficientStock
from commerce.projections.stock_ledger_entry import StockLedgerEntry
from commerce.projections.variant_stock import VariantStockLevel
from commerce.stock.lines import Shortfall, StockLine
from commerce.stock.movement import AdjustStock, RecordStockMovement
from commerce.stock.product import DECREMENTS, ChangeType, Product
from commerce.utils.commands import process_serialized
from commerce.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)

_LISTING_LIMIT = 1000

_COMPENSATING = {
    ChangeType.DEDUCT: ChangeType.ADD,
    ChangeType.RESERVE: ChangeType.RELEASE,
}

# Shared by every StockLedger in the process
product_locks = KeyedLocks()


@dataclass(frozen=True)
class LedgerPage:
    entries: list
    total: int
    limit: int
    offset: int


class StockLedger:
    def __init__(self, locks: KeyedLocks | None = None, threshold: int | None = None):
        self._locks = locks if locks is not None else product_locks
        self._threshold = threshold

    @property
    def threshold(self) -> int:
        return self._threshold if self._threshold is not None else low_stock_threshold()

    # -------------------------------------------------------------------
    # Pre-flight
    # -------------------------------------------------------------------
    def validate_availability(self, lines: list[StockLine]) -> list[Shortfall]:
        """Return one Shortfall per line the current stock cannot cover.

        Pure read. A missing product or variant counts as zero available.
        """
        repo = current_domain.repository_for(Product)
        products = {}
        shortfalls = []
        for line in lines:
            if line.product_id not in products:
                try:
                    products[line.product_id] = repo.get(line.product_id)
                except ObjectNotFoundError:
                    products[line.product_id] = None

            product = products[line.product_id]
            if product is None:
                shortfalls.append(
                    Shortfall(
                        product_id=line.product_id,
                        size=line.size,
                        color=line.color,
                        requested=line.quantity,
                        available=0,
                    )
                )
                continue

            shortfall = product.shortfall(line.size, line.color, line.quantity)
            if shortfall is not None:
                shortfalls.append(shortfall)
        return shortfalls

    # -------------------------------------------------------------------
    # Batch movements
    # -------------------------------------------------------------------
    def deduct(self, lines: list[StockLine], order_id, reason: str) -> None:
        """Deduct every line or none: a failure compensates the lines already deducted."""
        self._apply_decrements(lines, ChangeType.DEDUCT, order_id, reason)

    def reserve(self, lines: list[StockLine], order_id, reason: str) -> None:
        self._apply_decrements(lines, ChangeType.RESERVE, order_id, reason)

    def restore(self, lines: list[StockLine], order_id, reason: str) -> None:
        """Add every line back. Does not deduplicate by order id."""
        self._apply_increments(lines, ChangeType.ADD, order_id, reason)

    def release(self, lines: list[StockLine], order_id, reason: str) -> None:
        self._apply_increments(lines, ChangeType.RELEASE, order_id, reason)

    def adjust(self, product_id, size, color, new_stock, reason, notes=None) -> int:
        command = AdjustStock(
            product_id=product_id,
            size=size,
            color=color,
            new_stock=new_stock,
            reason=reason,
            notes=notes,
        )
        new = process_serialized(command, self._locks, product_id)
        logger.info(
            "Stock adjusted",
            product_id=str(product_id),
            size=size,
            color=color,
            new_stock=new,
        )
        return new

    def _apply_decrements(self, lines, change_type, order_id, reason):
        applied = []
        try:
            for line in lines:
                self._move(line, change_type, order_id, reason)
                applied.append(line)
        except Exception:
            if applied:
                self._compensate(applied, change_type, order_id, reason)
            raise

    def _apply_increments(self, lines, change_type, order_id, reason):
        for line in lines:
            try:
                self._move(line, change_type, order_id, reason)
            except ObjectNotFoundError:
                logger.warning(
                    "Cannot return stock to unknown product",
                    product_id=line.product_id,
                    order_id=str(order_id) if order_id else None,
                )

    def _compensate(self, applied, change_type, order_id, reason):
        inverse = _COMPENSATING[change_type]
        logger.warning(
            "Compensating partial stock batch",
            order_id=str(order_id) if order_id else None,
            items=len(applied),
        )
        for line in reversed(applied):
            self._move(line, inverse, order_id, f"Compensation: {reason}")

    def _move(self, line: StockLine, change_type: ChangeType, order_id, reason, notes=None) -> int:
        command = RecordStockMovement(
            product_id=line.product_id,
            size=line.size,
            color=line.color,
            change_type=change_type.value,
            quantity=line.quantity,
            order_id=order_id,
            reason=reason,
            notes=notes,
        )
        try:
            new_stock = process_serialized(command, self._locks, line.product_id)
        except ObjectNotFoundError:
            if change_type not in DECREMENTS:
                raise
            raise InsufficientStock(
                [
                    Shortfall(
                        product_id=line.product_id,
                        size=line.size,
                        color=line.color,
                        requested=line.quantity,
                        available=0,
                    )
                ]
            ) from None

        if change_type in DECREMENTS and 0 < new_stock <= self.threshold:
            logger.warning(
                "Low stock alert",
                product_id=line.product_id,
                size=line.size,
                color=line.color,
                stock=new_stock,
                threshold=self.threshold,
            )
        return new_stock

    # -------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------
    def low_stock(self, threshold: int | None = None) -> list:
        """Variants with ``0 < stock <= threshold``, lowest stock first."""
        threshold = self.threshold if threshold is None else threshold
        return (
            current_domain.repository_for(VariantStockLevel)
            ._dao.query.filter(stock__gt=0, stock__lte=threshold)
            .order_by("stock")
            .limit(_LISTING_LIMIT)
            .all()
            .items
        )

    def out_of_stock(self) -> list:
        return (
            current_domain.repository_for(VariantStockLevel)
            ._dao.query.filter(stock=0)
            .order_by("title")
            .limit(_LISTING_LIMIT)
            .all()
            .items
        )

    def alerts(self, threshold: int | None = None) -> dict:
        low = self.low_stock(threshold)
        out = self.out_of_stock()
        return {
            "low_stock_count": len(low),
            "out_of_stock_count": len(out),
            "low_stock": low,
            "out_of_stock": out,
        }

    def history(self, product_id, limit: int = 50, offset: int = 0) -> LedgerPage:
        """Ledger entries for a product, newest first."""
        result = (
            current_domain.repository_for(StockLedgerEntry)
            ._dao.query.filter(product_id=str(product_id))
            .order_by("-sequence")
            .offset(offset)
            .limit(limit)
            .all()
        )
        return LedgerPage(entries=result.items, total=result.total, limit=limit, offset=offset)

    def has_entries(self, order_id, change_type: ChangeType, reason: str) -> bool:
        result = (
            current_domain.repository_for(StockLedgerEntry)
            ._dao.query.filter(order_id=str(order_id), change_type=change_type.value, reason=reason)
            .all()
        )
        return result.total > 0

    def replay(self, product_id) -> dict:
        """Rebuild every variant's stock from the product's ledger, starting at zero.

        Returns a mapping of ``(size, color)`` to stock.
        """
        messages = current_domain.event_store.store.read(f"commerce::product-{product_id}")
        changes = [m.data for m in messages if m.metadata.headers.type == "Commerce.StockChanged.v1"]
        changes.sort(key=lambda data: (str(data["recorded_at"]), data["sequence"]))

        stock = {}
        for data in changes:
            key = (data["size"], data["color"])
            current = stock.get(key, 0)
            change_type = ChangeType(data["change_type"])
            if change_type == ChangeType.ADJUST:
                current = data["new_stock"]
            elif change_type in DECREMENTS:
                current -= data["quantity"]
            else:
                current += data["quantity"]
            stock[key] = current
        return stock
