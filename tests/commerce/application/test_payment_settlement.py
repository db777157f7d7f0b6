"""Application tests for payment intents, client verification and refunds."""

import threading
import time

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from commerce.domain import commerce
from commerce.errors import (
    GatewayUnavailable,
    InvalidSignature,
    OrderNotFound,
    PaymentGatewayNotConfigured,
    RefundExceedsTotal,
)
from commerce.gateway import configure_gateway
from commerce.gateway.fake_adapter import FakeGateway
from commerce.gateway.signature import payment_payload, sign
from commerce.order.confirmation import confirm_payment
from commerce.order.order import Order, OrderStatus
from commerce.order.settlement import open_intent, request_refund, verify_client_payment
from commerce.projections.order_lookup import find_order_id


@pytest.fixture()
def gateway_order(register_product, place_order):
    product_id = register_product()
    return place_order([(product_id, "M", "White", 2)], payment_method="Razorpay").order


@pytest.fixture()
def paid_order(gateway_order):
    confirm_payment(gateway_order.id, external_id="pay_001", status="captured", source="webhook")
    return current_domain.repository_for(Order).get(gateway_order.id)


def _payment_signature(gateway, gateway_order_id, payment_id):
    return sign(payment_payload(gateway_order_id, payment_id), gateway.key_secret)


class TestOpenIntent:
    def test_intent_is_recorded_on_order(self, gateway_order, gateway):
        intent = open_intent(gateway_order.id, 200.0, "INR", payment_method="Razorpay")

        stored = current_domain.repository_for(Order).get(gateway_order.id)
        assert stored.gateway_order_id == intent.intent_id
        assert stored.payment_attempts == 2
        assert gateway.calls[-1]["amount"] == 20000

    @pytest.mark.parametrize(
        "amount, currency, method",
        [
            (200.0, "GBP", "Razorpay"),
            (0.5, "INR", "Razorpay"),
            (2_000_000, "INR", "Razorpay"),
            (150.0, "INR", "Razorpay"),
            (200.0, "INR", "Cash on Delivery"),
        ],
    )
    def test_invalid_requests_are_rejected(self, gateway_order, amount, currency, method):
        with pytest.raises(ValidationError):
            open_intent(gateway_order.id, amount, currency, payment_method=method)

    def test_paid_order_takes_no_new_intent(self, paid_order):
        with pytest.raises(ValidationError):
            open_intent(paid_order.id, 200.0, "INR")

    def test_unknown_order(self):
        with pytest.raises(OrderNotFound):
            open_intent("no-such-order", 200.0, "INR")

    def test_unconfigured_gateway(self, gateway_order):
        from commerce.gateway import reset_gateway

        reset_gateway()
        with pytest.raises(PaymentGatewayNotConfigured):
            open_intent(gateway_order.id, 200.0, "INR")

    def test_gateway_failure_surfaces(self, gateway_order, gateway):
        gateway.configure(available=False)
        with pytest.raises(GatewayUnavailable):
            open_intent(gateway_order.id, 200.0, "INR")


class TestVerifyClientPayment:
    def test_valid_signature_pays_order(self, gateway_order, gateway, notifier):
        signature = _payment_signature(gateway, gateway_order.gateway_order_id, "pay_777")
        assert verify_client_payment(gateway_order.id, gateway_order.gateway_order_id, "pay_777", signature) is True

        stored = current_domain.repository_for(Order).get(gateway_order.id)
        assert stored.is_paid is True
        assert stored.payment_result.external_id == "pay_777"
        assert find_order_id(payment_id="pay_777") == str(gateway_order.id)
        assert notifier.kinds(gateway_order.id) == ["paid"]

    def test_bad_signature_is_rejected_without_change(self, gateway_order):
        with pytest.raises(InvalidSignature):
            verify_client_payment(gateway_order.id, gateway_order.gateway_order_id, "pay_777", "0" * 64)
        assert current_domain.repository_for(Order).get(gateway_order.id).is_paid is False

    def test_second_confirmation_is_a_no_op(self, paid_order, gateway, notifier):
        signature = _payment_signature(gateway, paid_order.gateway_order_id, "pay_002")
        assert verify_client_payment(paid_order.id, paid_order.gateway_order_id, "pay_002", signature) is False

        stored = current_domain.repository_for(Order).get(paid_order.id)
        assert stored.payment_result.external_id == "pay_001"
        assert stored.paid_at == paid_order.paid_at
        assert notifier.kinds(paid_order.id) == ["paid"]

    def test_signature_from_another_order_is_rejected(self, register_product, place_order, gateway):
        product_id = register_product()
        cheap = place_order([(product_id, "M", "White", 1)], payment_method="Razorpay").order
        dear = place_order([(product_id, "M", "White", 3)], payment_method="Razorpay").order
        signature = _payment_signature(gateway, cheap.gateway_order_id, "pay_cheap")
        verify_client_payment(cheap.id, cheap.gateway_order_id, "pay_cheap", signature)

        with pytest.raises(InvalidSignature):
            verify_client_payment(dear.id, cheap.gateway_order_id, "pay_cheap", signature)
        assert current_domain.repository_for(Order).get(dear.id).is_paid is False

    def test_order_without_intent_is_rejected(self, register_product, place_order, gateway):
        product_id = register_product()
        order = place_order([(product_id, "M", "White", 1)]).order
        signature = _payment_signature(gateway, "order_unrelated", "pay_1")

        with pytest.raises(InvalidSignature):
            verify_client_payment(order.id, "order_unrelated", "pay_1", signature)


class TestConfirmPayment:
    def test_repeated_confirmations_keep_first_result(self, gateway_order, notifier):
        results = [
            confirm_payment(gateway_order.id, external_id=f"pay_{n}", status="captured", source="webhook")
            for n in range(3)
        ]
        assert results == [True, False, False]
        stored = current_domain.repository_for(Order).get(gateway_order.id)
        assert stored.payment_result.external_id == "pay_0"
        assert notifier.kinds(gateway_order.id) == ["paid"]

    def test_notifier_failure_does_not_unwind_payment(self, gateway_order, notifier):
        notifier.configure(should_succeed=False)
        assert confirm_payment(gateway_order.id, external_id="pay_1", status="captured", source="webhook") is True
        assert current_domain.repository_for(Order).get(gateway_order.id).is_paid is True

    def test_unknown_order(self):
        with pytest.raises(OrderNotFound):
            confirm_payment("no-such-order", external_id="pay_1", status="captured", source="webhook")


class TestRequestRefund:
    def test_full_refund_by_default(self, paid_order, gateway):
        order = request_refund(paid_order.id, reason="Damaged in transit")

        assert order.refund.amount == 200.0
        assert order.refund.status == "pending"
        assert gateway.calls[-1]["method"] == "create_refund"
        assert gateway.calls[-1]["payment_id"] == "pay_001"
        assert gateway.calls[-1]["amount"] == 20000

    def test_refund_equal_to_total_is_accepted(self, paid_order):
        assert request_refund(paid_order.id, amount=200.0).refund.amount == 200.0

    def test_refund_above_total_never_reaches_gateway(self, paid_order, gateway):
        calls_before = len(gateway.calls)
        with pytest.raises(RefundExceedsTotal):
            request_refund(paid_order.id, amount=200.01)
        assert len(gateway.calls) == calls_before

    def test_processed_refund_marks_order_refunded(self, paid_order, gateway):
        gateway.configure(refund_status="processed")
        order = request_refund(paid_order.id)
        assert order.status == OrderStatus.REFUNDED.value

    def test_unpaid_order_cannot_be_refunded(self, gateway_order):
        with pytest.raises(ValidationError):
            request_refund(gateway_order.id)

    def test_second_refund_is_rejected(self, paid_order):
        request_refund(paid_order.id, amount=50.0)
        with pytest.raises(ValidationError):
            request_refund(paid_order.id, amount=50.0)

    @pytest.mark.slow
    def test_concurrent_refunds_reach_gateway_once(self, paid_order):
        gateway = SlowRefundGateway()
        configure_gateway(gateway)
        errors = []

        def _refund():
            try:
                with commerce.domain_context():
                    request_refund(paid_order.id, amount=80.0)
            except ValidationError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=_refund) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        refunds = [call for call in gateway.calls if call["method"] == "create_refund"]
        assert len(refunds) == 1
        assert len(errors) == 1
        stored = current_domain.repository_for(Order).get(paid_order.id)
        assert stored.refund.amount == 80.0


class SlowRefundGateway(FakeGateway):
    """Widens the window between the refund check and the recorded refund."""

    def create_refund(self, payment_id, amount, notes=None):
        time.sleep(0.2)
        return super().create_refund(payment_id, amount, notes=notes)
