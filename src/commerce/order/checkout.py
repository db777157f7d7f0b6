"""Checkout — turns a cart into a Pending order with its stock deducted.

Steps:
    1. Pre-flight availability check (itemised shortfalls on failure).
    2. Create the order.
    3. Deduct stock as one saga; on failure the order is cancelled without
       restocking, since the saga already returned what it took.
    4. For gateway payment methods, open a payment intent when a gateway is
       configured. The order stands even if this step fails; the client can
       ask for an intent again.
"""

import json
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from commerce.errors import GatewayUnavailable, InsufficientStock
from commerce.gateway import get_gateway
from commerce.gateway.port import IntentResult
from commerce.order.cancellation import CancelOrder
from commerce.order.confirmation import load_order, record_intent
from commerce.order.creation import CreateOrder
from commerce.order.order import Order
from commerce.order.settlement import is_gateway_method, to_minor_units
from commerce.stock.ledger import StockLedger
from commerce.stock.lines import StockLine

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "INR"


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    intent: IntentResult | None = None


class CheckoutService:
    def __init__(self, ledger: StockLedger | None = None):
        self.ledger = ledger or StockLedger()

    def place_order(self, user_id, items, shipping_address, payment_method, prices) -> CheckoutResult:
        """Validate, create, deduct and (optionally) open a payment intent.

        Args:
            items: List of dicts with product_id, size, color, quantity,
                   unit_price and optional title.
            prices: Dict with items_price, tax_price, shipping_price and
                    optional total_price.

        Raises:
            InsufficientStock: with the shortfalls, before anything is written,
                or after compensation when stock ran out mid-checkout.
        """
        lines = [
            StockLine(
                product_id=str(item["product_id"]),
                size=item["size"],
                color=item["color"],
                quantity=int(item["quantity"]),
            )
            for item in items
        ]

        shortfalls = self.ledger.validate_availability(lines)
        if shortfalls:
            logger.info("Checkout rejected for insufficient stock", user_id=str(user_id), shortfalls=len(shortfalls))
            raise InsufficientStock(shortfalls)

        order_id = current_domain.process(
            CreateOrder(
                user_id=str(user_id),
                items=json.dumps(items),
                shipping_address=json.dumps(shipping_address),
                payment_method=payment_method,
                items_price=prices.get("items_price", 0.0),
                tax_price=prices.get("tax_price", 0.0),
                shipping_price=prices.get("shipping_price", 0.0),
                total_price=prices.get("total_price"),
            ),
            asynchronous=False,
        )

        try:
            self.ledger.deduct(lines, order_id, "Order placed")
        except Exception:
            logger.warning("Stock deduction failed during checkout, cancelling order", order_id=order_id)
            current_domain.process(
                CancelOrder(order_id=order_id, reason="Stock deduction failed", restock=False),
                asynchronous=False,
            )
            raise

        logger.info("Order placed", order_id=order_id, user_id=str(user_id), items=len(lines))

        intent = None
        if is_gateway_method(payment_method):
            intent = self._open_intent(order_id)

        return CheckoutResult(order=load_order(order_id), intent=intent)

    def _open_intent(self, order_id) -> IntentResult | None:
        gateway = get_gateway()
        if not gateway.is_configured:
            logger.info("Payment gateway not configured, skipping intent", order_id=order_id)
            return None

        order = load_order(order_id)
        try:
            intent = gateway.create_intent(
                amount=to_minor_units(order.total_price),
                currency=DEFAULT_CURRENCY,
                receipt=f"order_{order_id}",
                notes={"orderId": str(order_id), "userId": str(order.user_id)},
            )
        except GatewayUnavailable:
            logger.warning("Payment intent failed at checkout; client may retry", order_id=order_id)
            return None

        record_intent(order_id, intent.intent_id, order.total_price, intent.currency)
        return intent
