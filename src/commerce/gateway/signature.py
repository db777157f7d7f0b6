"""HMAC-SHA256 signatures as issued by the payment gateway."""

import hashlib
import hmac


def _as_bytes(value) -> bytes:
    return value if isinstance(value, bytes) else str(value).encode("utf-8")


def sign(payload, secret: str) -> str:
    """Hex HMAC-SHA256 of ``payload`` under ``secret``."""
    return hmac.new(_as_bytes(secret), _as_bytes(payload), hashlib.sha256).hexdigest()


def verify_signature(payload, signature: str | None, secret: str | None) -> bool:
    """Constant-time comparison of ``signature`` with the expected HMAC.

    Missing signatures and missing secrets never verify.
    """
    if not signature or not secret:
        return False
    return hmac.compare_digest(_as_bytes(sign(payload, secret)), _as_bytes(signature))


def payment_payload(gateway_order_id: str, gateway_payment_id: str) -> str:
    """Canonical string the gateway signs when a payment completes."""
    return f"{gateway_order_id}|{gateway_payment_id}"
