"""Application tests for fulfillment, cancellation restocking and refunds."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from commerce.order.cancellation import CancelOrder
from commerce.order.confirmation import confirm_payment
from commerce.order.fulfillment import AppendTracking, MarkOrderDelivered, UpdateOrderStatus
from commerce.order.order import Order, OrderStatus
from commerce.order.settlement import request_refund
from commerce.projections.order_lookup import OrderLookup
from commerce.stock.order_events import _restock
from commerce.stock.product import Product


def _stock(product_id, size="M", color="White"):
    return current_domain.repository_for(Product).get(product_id).available(size, color)


def _process(command):
    return current_domain.process(command, asynchronous=False)


@pytest.fixture()
def product_id(register_product):
    return register_product()


@pytest.fixture()
def order(product_id, place_order):
    return place_order([(product_id, "M", "White", 2)]).order


class TestFulfillment:
    def test_status_walk_sends_notices(self, order, notifier):
        _process(UpdateOrderStatus(order_id=order.id, status="Processing"))
        _process(UpdateOrderStatus(order_id=order.id, status="Shipped", carrier="BlueDart", location="Hub"))
        assert _process(MarkOrderDelivered(order_id=order.id, location="Doorstep")) == "Delivered"

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.carrier == "BlueDart"
        assert stored.is_delivered is True
        assert [t.status for t in stored.tracking_history] == ["Pending", "Processing", "Shipped", "Delivered"]
        assert notifier.kinds(order.id) == ["shipped", "delivered"]

        lookup = current_domain.repository_for(OrderLookup).get(str(order.id))
        assert lookup.status == "Delivered"

    def test_same_status_is_a_no_op(self, order):
        _process(UpdateOrderStatus(order_id=order.id, status="Processing"))
        assert _process(UpdateOrderStatus(order_id=order.id, status="Processing")) == "Processing"

        stored = current_domain.repository_for(Order).get(order.id)
        assert [t.status for t in stored.tracking_history] == ["Pending", "Processing"]

    def test_backward_move_is_rejected(self, order):
        _process(UpdateOrderStatus(order_id=order.id, status="Shipped"))
        with pytest.raises(ValidationError):
            _process(UpdateOrderStatus(order_id=order.id, status="Processing"))

    def test_free_form_tracking_entry(self, order):
        _process(AppendTracking(order_id=order.id, status="Out for delivery", location="Koramangala"))

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.status == "Pending"
        assert stored.tracking_history[-1].status == "Out for delivery"
        assert stored.tracking_history[-1].location == "Koramangala"


class TestCancellation:
    def test_cancel_restocks_and_notifies(self, order, product_id, notifier):
        assert _stock(product_id) == 3
        _process(CancelOrder(order_id=order.id, reason="Changed my mind"))

        assert _stock(product_id) == 5
        assert current_domain.repository_for(Order).get(order.id).status == "Cancelled"
        assert notifier.kinds(order.id) == ["cancelled"]

    def test_cancel_through_status_update(self, order, product_id):
        _process(UpdateOrderStatus(order_id=order.id, status="Cancelled", description="Customer request"))
        assert _stock(product_id) == 5

    def test_redelivered_cancellation_restocks_once(self, order, product_id):
        _process(CancelOrder(order_id=order.id, reason="Changed my mind"))
        stored = current_domain.repository_for(Order).get(order.id)

        _restock(order.id, stored._items_json(), "Order cancelled")
        _restock(order.id, stored._items_json(), "Order cancelled")

        assert _stock(product_id) == 5

    def test_delivered_order_cannot_be_cancelled(self, order, product_id):
        _process(MarkOrderDelivered(order_id=order.id))
        with pytest.raises(ValidationError):
            _process(CancelOrder(order_id=order.id, reason="Too late"))
        assert _stock(product_id) == 3

    def test_cancelled_order_cannot_move_forward(self, order):
        _process(CancelOrder(order_id=order.id, reason="Changed my mind"))
        with pytest.raises(ValidationError):
            _process(UpdateOrderStatus(order_id=order.id, status="Processing"))


class TestRefundRestock:
    def test_processed_refund_restocks(self, order, product_id, gateway):
        confirm_payment(order.id, external_id="pay_1", status="captured", source="webhook")
        gateway.configure(refund_status="processed")

        refunded = request_refund(order.id)

        assert refunded.status == OrderStatus.REFUNDED.value
        assert _stock(product_id) == 5

    def test_pending_refund_leaves_stock(self, order, product_id):
        confirm_payment(order.id, external_id="pay_1", status="captured", source="webhook")
        request_refund(order.id)
        assert _stock(product_id) == 3

    def test_refund_after_cancellation_does_not_restock_twice(self, order, product_id, gateway):
        confirm_payment(order.id, external_id="pay_1", status="captured", source="webhook")
        _process(CancelOrder(order_id=order.id, reason="Out of delivery area"))
        assert _stock(product_id) == 5

        gateway.configure(refund_status="processed")
        request_refund(order.id)

        assert current_domain.repository_for(Order).get(order.id).status == OrderStatus.REFUNDED.value
        assert _stock(product_id) == 5
