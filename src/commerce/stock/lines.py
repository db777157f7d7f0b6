"""Plain value types passed into and out of the stock ledger."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class StockLine:
    """One requested quantity of a product variant, as carried by an order."""

    product_id: str
    size: str
    color: str
    quantity: int


@dataclass(frozen=True)
class Shortfall:
    product_id: str
    size: str
    color: str
    requested: int
    available: int
    product_title: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)
