"""Environment-driven settings for the commerce context.

Protean's own configuration (databases, event store, brokers) lives in
``pyproject.toml`` under ``[tool.protean]``. This module only covers what the
framework does not: payment gateway credentials and stock alert thresholds.
"""

import os
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 10
DEFAULT_GATEWAY_BASE_URL = "https://api.razorpay.com/v1"
DEFAULT_GATEWAY_TIMEOUT = 10.0


def low_stock_threshold() -> int:
    return int(os.getenv("LOW_STOCK_THRESHOLD", DEFAULT_LOW_STOCK_THRESHOLD))


@dataclass(frozen=True)
class GatewaySettings:
    key_id: str = ""
    key_secret: str = ""
    webhook_secret: str = ""
    webhook_secret_source: str = "unset"  # "webhook_secret", "key_secret" or "unset"
    base_url: str = DEFAULT_GATEWAY_BASE_URL
    timeout: float = DEFAULT_GATEWAY_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    @classmethod
    def from_env(cls, environ=None) -> "GatewaySettings":
        """Read gateway settings from the environment.

        When ``RAZORPAY_WEBHOOK_SECRET`` is unset the key secret is used to
        verify webhooks. That fallback is recorded in ``webhook_secret_source``
        and logged so it never goes unnoticed.
        """
        env = os.environ if environ is None else environ

        key_id = env.get("RAZORPAY_KEY_ID", "")
        key_secret = env.get("RAZORPAY_KEY_SECRET", "")
        webhook_secret = env.get("RAZORPAY_WEBHOOK_SECRET", "")

        if webhook_secret:
            source = "webhook_secret"
        elif key_secret:
            webhook_secret = key_secret
            source = "key_secret"
            logger.warning(
                "Webhook secret not set; verifying webhooks with the gateway key secret",
                webhook_secret_source=source,
            )
        else:
            source = "unset"

        return cls(
            key_id=key_id,
            key_secret=key_secret,
            webhook_secret=webhook_secret,
            webhook_secret_source=source,
            base_url=env.get("RAZORPAY_BASE_URL", DEFAULT_GATEWAY_BASE_URL),
            timeout=float(env.get("GATEWAY_TIMEOUT_SECONDS", DEFAULT_GATEWAY_TIMEOUT)),
        )
