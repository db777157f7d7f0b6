"""Integration tests for the event streams behind Product and Order."""

from protean import current_domain

from commerce.order.cancellation import CancelOrder
from commerce.order.order import Order
from commerce.stock.ledger import StockLedger
from commerce.stock.lines import StockLine
from commerce.stock.product import Product


def _types(stream_name):
    return [m.metadata.headers.type for m in current_domain.event_store.store.read(stream_name)]


class TestProductStream:
    def test_registration_and_movements_are_recorded(self, register_product):
        product_id = register_product()
        StockLedger().deduct([StockLine(product_id, "M", "White", 2)], "ord-001", "Order placed")

        assert _types(f"commerce::product-{product_id}") == [
            "Commerce.ProductRegistered.v1",
            "Commerce.StockChanged.v1",
            "Commerce.StockChanged.v1",
        ]

    def test_product_rebuilds_from_its_stream(self, register_product):
        product_id = register_product(variants=[{"size": "M", "color": "White", "price": 100.0, "stock": 9}])
        ledger = StockLedger()
        ledger.deduct([StockLine(product_id, "M", "White", 4)], "ord-001", "Order placed")
        ledger.restore([StockLine(product_id, "M", "White", 1)], "ord-001", "Order cancelled")

        product = current_domain.repository_for(Product).get(product_id)
        assert product.available("M", "White") == 6
        assert ledger.replay(product_id) == {("M", "White"): 6}


class TestOrderStream:
    def test_order_events_are_versioned(self, register_product, place_order):
        product_id = register_product()
        order = place_order([(product_id, "M", "White", 1)]).order
        current_domain.process(CancelOrder(order_id=order.id, reason="Changed my mind"), asynchronous=False)

        types = _types(f"commerce::order-{order.id}")
        assert types[0] == "Commerce.OrderCreated.v1"
        assert "Commerce.OrderCancelled.v1" in types
        assert all(t.endswith(".v1") for t in types)

    def test_order_rebuilds_from_its_stream(self, register_product, place_order):
        product_id = register_product()
        order = place_order([(product_id, "M", "White", 3)], shipping_price=25.0).order

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.total_price == 325.0
        assert stored.items[0].quantity == 3
        assert stored.shipping_address.city == "Bengaluru"
        assert stored.is_delivered is False
        assert stored.delivered_at is None
