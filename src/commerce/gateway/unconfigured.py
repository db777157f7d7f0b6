"""The gateway used when no credentials were supplied.

Callers on optional paths check ``is_configured`` first; anything that calls
through anyway gets ``PaymentGatewayNotConfigured`` rather than a transient
failure.
"""

from commerce.errors import PaymentGatewayNotConfigured
from commerce.gateway.port import PaymentGateway


class UnconfiguredGateway(PaymentGateway):
    is_configured = False

    @property
    def public_key(self):
        return None

    def _refuse(self):
        raise PaymentGatewayNotConfigured("Payment gateway is not configured")

    def create_intent(self, amount, currency, receipt, notes=None):
        self._refuse()

    def create_refund(self, payment_id, amount, notes=None):
        self._refuse()

    def verify_webhook_signature(self, raw_body, signature):
        self._refuse()

    def verify_payment_signature(self, gateway_order_id, gateway_payment_id, signature):
        self._refuse()
