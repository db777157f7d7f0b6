"""Tests for the Order aggregate — creation, payment and the status machine."""

import pytest
from protean.exceptions import ValidationError

from commerce.errors import RefundExceedsTotal
from commerce.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderPaid,
    OrderRefunded,
    RefundRecorded,
    RefundStatusUpdated,
    TrackingUpdated,
)
from commerce.order.order import Order, OrderStatus, PaymentMethod


def _make_order(**overrides):
    defaults = {
        "user_id": "user-001",
        "items": [
            {
                "product_id": "prod-001",
                "title": "Linen Shirt",
                "size": "M",
                "color": "White",
                "quantity": 2,
                "unit_price": 100.0,
            }
        ],
        "shipping_address": {
            "full_name": "Asha Rao",
            "address": "12 MG Road",
            "city": "Bengaluru",
            "postal_code": "560001",
            "country": "India",
        },
        "payment_method": PaymentMethod.RAZORPAY.value,
        "prices": {"items_price": 200.0, "tax_price": 36.0, "shipping_price": 40.0},
        "tracking_number": "ZYNLZ5K3Q1XABCD1234",
    }
    defaults.update(overrides)
    order = Order.create(**defaults)
    return order


def _paid_order():
    order = _make_order()
    order.mark_paid(external_id="pay_001", status="captured")
    return order


def _events_of(order, event_cls):
    return [e for e in order._events if isinstance(e, event_cls)]


class TestOrderCreation:
    def test_create_starts_pending_with_tracking_entry(self):
        order = _make_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.tracking_history[0].status == "Pending"
        assert order.tracking_history[0].description == "Order placed successfully"
        assert isinstance(order._events[0], OrderCreated)

    def test_total_is_sum_of_parts(self):
        order = _make_order()
        assert order.total_price == 276.0

    def test_mismatched_total_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _make_order(prices={"items_price": 200.0, "tax_price": 0.0, "shipping_price": 0.0, "total_price": 150.0})
        assert "total_price" in exc.value.messages

    def test_empty_order_is_rejected(self):
        with pytest.raises(ValidationError):
            _make_order(items=[])

    def test_unknown_payment_method_is_rejected(self):
        with pytest.raises(ValidationError):
            _make_order(payment_method="Barter")

    def test_stock_lines_mirror_items(self):
        lines = _make_order().stock_lines()
        assert len(lines) == 1
        assert (lines[0].product_id, lines[0].size, lines[0].color, lines[0].quantity) == ("prod-001", "M", "White", 2)


class TestMarkPaid:
    def test_first_confirmation_pays_the_order(self):
        order = _make_order()
        assert order.mark_paid(external_id="pay_001", status="captured", payer_email="asha@example.com") is True
        assert order.is_paid is True
        assert order.payment_result.external_id == "pay_001"
        assert order.paid_at is not None

    def test_repeat_confirmation_keeps_first_result(self):
        order = _paid_order()
        paid_at = order.paid_at

        assert order.mark_paid(external_id="pay_002", status="captured") is False
        assert order.payment_result.external_id == "pay_001"
        assert order.paid_at == paid_at
        assert len(_events_of(order, OrderPaid)) == 1

    def test_payment_reference_is_required(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.mark_paid(external_id="", status="captured")


class TestStatusMachine:
    def test_forward_moves_append_tracking(self):
        order = _make_order()
        order.advance_to(OrderStatus.PROCESSING)
        order.advance_to(OrderStatus.SHIPPED, location="Bengaluru hub")
        assert order.status == OrderStatus.SHIPPED.value
        assert [t.status for t in order.tracking_history] == ["Pending", "Processing", "Shipped"]

    def test_skipping_forward_is_allowed(self):
        order = _make_order()
        order.advance_to(OrderStatus.SHIPPED)
        assert order.status == OrderStatus.SHIPPED.value

    def test_same_status_is_a_no_op(self):
        order = _make_order()
        assert order.advance_to(OrderStatus.PENDING) is False
        assert len(order.tracking_history) == 1

    def test_backward_move_is_rejected(self):
        order = _make_order()
        order.advance_to(OrderStatus.SHIPPED)
        with pytest.raises(ValidationError):
            order.advance_to(OrderStatus.PROCESSING)

    def test_delivery_sets_delivered_flags(self):
        order = _make_order()
        order.mark_delivered(location="Doorstep")
        assert order.is_delivered is True
        assert order.delivered_at is not None
        assert order.status == OrderStatus.DELIVERED.value

    def test_cancelled_order_cannot_move_on(self):
        order = _make_order()
        order.cancel(reason="Changed my mind")
        with pytest.raises(ValidationError):
            order.advance_to(OrderStatus.PROCESSING)

    def test_refunded_requires_processed_refund(self):
        order = _paid_order()
        with pytest.raises(ValidationError):
            order.advance_to(OrderStatus.REFUNDED)

    def test_free_form_tracking_entry_keeps_status(self):
        order = _make_order()
        order.advance_to(OrderStatus.SHIPPED)
        order.append_tracking("In transit", location="Hosur")
        assert order.status == OrderStatus.SHIPPED.value
        assert order.tracking_history[-1].status == "In transit"
        assert isinstance(order._events[-1], TrackingUpdated)


class TestCancellation:
    def test_cancel_carries_items_for_restock(self):
        order = _make_order()
        order.cancel(reason="Out of budget")
        event = _events_of(order, OrderCancelled)[0]
        assert event.restock is True
        assert event.previous_status == OrderStatus.PENDING.value
        assert '"product_id": "prod-001"' in event.items

    def test_cancel_after_delivery_is_rejected(self):
        order = _make_order()
        order.mark_delivered()
        with pytest.raises(ValidationError):
            order.cancel(reason="Too late")


class TestRefund:
    def test_refund_above_total_is_rejected(self):
        order = _paid_order()
        with pytest.raises(RefundExceedsTotal):
            order.apply_refund(refund_id="rfnd_001", amount=order.total_price + 1, status="pending")

    def test_pending_refund_is_recorded_without_status_change(self):
        order = _paid_order()
        assert order.apply_refund(refund_id="rfnd_001", amount=100.0, status="pending") is True
        assert order.refund.status == "pending"
        assert order.status == OrderStatus.PENDING.value

    def test_processed_refund_moves_order_to_refunded(self):
        order = _paid_order()
        order.apply_refund(refund_id="rfnd_001", amount=100.0, status="pending")
        order.apply_refund(refund_id="rfnd_001", amount=100.0, status="processed")

        assert order.status == OrderStatus.REFUNDED.value
        assert order.refund.processed_at is not None
        assert len(_events_of(order, RefundStatusUpdated)) == 1
        assert _events_of(order, OrderRefunded)[0].restock is True

    def test_create_only_keeps_first_record(self):
        order = _paid_order()
        order.apply_refund(refund_id="rfnd_001", amount=100.0, status="pending")
        assert order.apply_refund(refund_id="rfnd_002", amount=50.0, status="pending", create_only=True) is False
        assert order.refund.refund_id == "rfnd_001"
        assert len(_events_of(order, RefundRecorded)) == 1

    def test_processed_update_for_unknown_refund_creates_it(self):
        order = _paid_order()
        order.apply_refund(refund_id="rfnd_001", amount=276.0, status="processed")
        assert order.refund.status == "processed"
        assert order.status == OrderStatus.REFUNDED.value

    def test_refund_of_cancelled_order_does_not_restock_twice(self):
        order = _paid_order()
        order.cancel(reason="Customer request")
        order.apply_refund(refund_id="rfnd_001", amount=276.0, status="processed")
        assert _events_of(order, OrderRefunded)[0].restock is False

    def test_repeated_processed_update_is_a_no_op(self):
        order = _paid_order()
        order.apply_refund(refund_id="rfnd_001", amount=276.0, status="processed")
        assert order.apply_refund(refund_id="rfnd_001", amount=276.0, status="processed") is False
        assert len(_events_of(order, OrderRefunded)) == 1
