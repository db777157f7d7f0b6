"""Razorpay gateway adapter over its REST API.

Every call carries a timeout. Timeouts, transport errors and error responses
all surface as ``GatewayUnavailable`` so the caller can report a retryable
failure instead of hanging the request.
"""

import httpx
import structlog

from commerce.config import GatewaySettings
from commerce.errors import GatewayUnavailable
from commerce.gateway.port import IntentResult, PaymentGateway, RefundResult
from commerce.gateway.signature import payment_payload, verify_signature

logger = structlog.get_logger(__name__)


class RazorpayGateway(PaymentGateway):
    def __init__(self, settings: GatewaySettings, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.Client(
            base_url=settings.base_url,
            auth=(settings.key_id, settings.key_secret),
            timeout=httpx.Timeout(settings.timeout),
        )

    @property
    def public_key(self) -> str:
        return self._settings.key_id

    def _post(self, path: str, payload: dict) -> dict:
        try:
            response = self._client.post(path, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Payment gateway timed out", path=path)
            raise GatewayUnavailable("Payment gateway timed out") from exc
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.warning("Payment gateway rejected request", path=path, status_code=status_code)
            raise GatewayUnavailable(f"Payment gateway returned {status_code}", status_code=status_code) from exc
        except httpx.RequestError as exc:
            logger.warning("Payment gateway unreachable", path=path, error=exc.__class__.__name__)
            raise GatewayUnavailable("Payment gateway unreachable") from exc
        return response.json()

    def create_intent(self, amount, currency, receipt, notes=None) -> IntentResult:
        data = self._post(
            "/orders",
            {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes or {}},
        )
        logger.info("Payment intent created", intent_id=data["id"], amount=amount, currency=currency)
        return IntentResult(
            intent_id=data["id"],
            amount=data.get("amount", amount),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
            status=data.get("status", "created"),
        )

    def create_refund(self, payment_id, amount, notes=None) -> RefundResult:
        data = self._post(f"/payments/{payment_id}/refund", {"amount": amount, "notes": notes or {}})
        logger.info("Refund created", refund_id=data["id"], payment_id=payment_id, status=data.get("status"))
        return RefundResult(
            refund_id=data["id"],
            payment_id=data.get("payment_id", payment_id),
            amount=data.get("amount", amount),
            status=data.get("status", "pending"),
        )

    def verify_webhook_signature(self, raw_body, signature) -> bool:
        return verify_signature(raw_body, signature, self._settings.webhook_secret)

    def verify_payment_signature(self, gateway_order_id, gateway_payment_id, signature) -> bool:
        return verify_signature(
            payment_payload(gateway_order_id, gateway_payment_id),
            signature,
            self._settings.key_secret,
        )

    def close(self) -> None:
        self._client.close()
