"""RazorpayGateway against a mocked HTTP transport."""

import json

import httpx
import pytest

from commerce.config import GatewaySettings
from commerce.errors import GatewayUnavailable
from commerce.gateway.razorpay_adapter import RazorpayGateway
from commerce.gateway.signature import payment_payload, sign

SETTINGS = GatewaySettings(
    key_id="rzp_test_1",
    key_secret="key_secret",
    webhook_secret="whsec_1",
    webhook_secret_source="webhook_secret",
    base_url="https://gateway.test/v1",
    timeout=1.0,
)


def _gateway(handler):
    client = httpx.Client(base_url=SETTINGS.base_url, transport=httpx.MockTransport(handler))
    return RazorpayGateway(SETTINGS, client=client)


class TestCreateIntent:
    def test_posts_order_and_parses_response(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"id": "order_123", "amount": 14950, "currency": "INR", "receipt": "order_1", "status": "created"},
            )

        intent = _gateway(handler).create_intent(14950, "INR", "order_1", notes={"orderId": "1"})

        assert seen["path"] == "/v1/orders"
        assert seen["body"] == {"amount": 14950, "currency": "INR", "receipt": "order_1", "notes": {"orderId": "1"}}
        assert (intent.intent_id, intent.amount, intent.currency) == ("order_123", 14950, "INR")

    def test_server_error_is_unavailable(self):
        gateway = _gateway(lambda request: httpx.Response(500, json={"error": {"description": "boom"}}))
        with pytest.raises(GatewayUnavailable) as exc:
            gateway.create_intent(100, "INR", "order_1")
        assert exc.value.status_code == 500

    def test_timeout_is_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GatewayUnavailable):
            _gateway(handler).create_intent(100, "INR", "order_1")

    def test_connection_failure_is_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayUnavailable):
            _gateway(handler).create_intent(100, "INR", "order_1")


class TestCreateRefund:
    def test_refund_uses_payment_path(self):
        def handler(request):
            assert request.url.path == "/v1/payments/pay_1/refund"
            return httpx.Response(200, json={"id": "rfnd_1", "payment_id": "pay_1", "amount": 5000, "status": "processed"})

        refund = _gateway(handler).create_refund("pay_1", 5000)
        assert (refund.refund_id, refund.status) == ("rfnd_1", "processed")


class TestSignatures:
    def test_webhook_uses_webhook_secret(self):
        gateway = _gateway(lambda request: httpx.Response(200))
        body = b'{"event":"payment.captured"}'
        assert gateway.verify_webhook_signature(body, sign(body, "whsec_1")) is True
        assert gateway.verify_webhook_signature(body, sign(body, "key_secret")) is False

    def test_payment_uses_key_secret(self):
        gateway = _gateway(lambda request: httpx.Response(200))
        signature = sign(payment_payload("order_1", "pay_1"), "key_secret")
        assert gateway.verify_payment_signature("order_1", "pay_1", signature) is True
        assert gateway.verify_payment_signature("order_1", "pay_2", signature) is False

    def test_public_key(self):
        assert _gateway(lambda request: httpx.Response(200)).public_key == "rzp_test_1"
