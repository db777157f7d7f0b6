"""Configurable fake payment gateway for development and testing.

No network calls: intents and refunds get deterministic-looking ids and every
call is recorded in ``calls``. Signatures are real HMACs under the fake's
secrets, so tests exercise the same verification code production uses.
"""

from uuid import uuid4

from commerce.errors import GatewayUnavailable
from commerce.gateway.port import IntentResult, PaymentGateway, RefundResult
from commerce.gateway.signature import payment_payload, verify_signature

FAKE_KEY_ID = "rzp_test_fake"
FAKE_KEY_SECRET = "fake_key_secret"
FAKE_WEBHOOK_SECRET = "whsec_test"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(
        self,
        key_id: str = FAKE_KEY_ID,
        key_secret: str = FAKE_KEY_SECRET,
        webhook_secret: str = FAKE_WEBHOOK_SECRET,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.available: bool = True
        self.refund_status: str = "pending"
        self.calls: list[dict] = []

    def configure(self, available: bool = True, refund_status: str = "pending") -> None:
        """Configure gateway behavior at runtime."""
        self.available = available
        self.refund_status = refund_status

    @property
    def public_key(self) -> str:
        return self.key_id

    def _check_available(self):
        if not self.available:
            raise GatewayUnavailable("Payment gateway unavailable", status_code=503)

    def create_intent(self, amount, currency, receipt, notes=None) -> IntentResult:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes or {},
            }
        )
        self._check_available()
        return IntentResult(
            intent_id=f"order_fake_{uuid4().hex[:14]}",
            amount=amount,
            currency=currency,
            receipt=receipt,
        )

    def create_refund(self, payment_id, amount, notes=None) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "payment_id": payment_id,
                "amount": amount,
                "notes": notes or {},
            }
        )
        self._check_available()
        return RefundResult(
            refund_id=f"rfnd_fake_{uuid4().hex[:14]}",
            payment_id=payment_id,
            amount=amount,
            status=self.refund_status,
        )

    def verify_webhook_signature(self, raw_body, signature) -> bool:
        return verify_signature(raw_body, signature, self.webhook_secret)

    def verify_payment_signature(self, gateway_order_id, gateway_payment_id, signature) -> bool:
        return verify_signature(payment_payload(gateway_order_id, gateway_payment_id), signature, self.key_secret)
