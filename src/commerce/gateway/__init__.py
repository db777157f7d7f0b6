"""Payment gateway wiring.

The application builds one gateway at startup from ``GatewaySettings`` and
installs it with ``configure_gateway()``. Until then, and whenever no
credentials exist, ``get_gateway()`` returns an ``UnconfiguredGateway``.
"""

import structlog

from commerce.config import GatewaySettings
from commerce.gateway.port import PaymentGateway
from commerce.gateway.unconfigured import UnconfiguredGateway

logger = structlog.get_logger(__name__)

_current_gateway: PaymentGateway = UnconfiguredGateway()


def build_gateway(settings: GatewaySettings) -> PaymentGateway:
    if not settings.is_configured:
        logger.warning("Payment gateway credentials missing; gateway payments disabled")
        return UnconfiguredGateway()

    from commerce.gateway.razorpay_adapter import RazorpayGateway

    return RazorpayGateway(settings)


def configure_gateway(gateway: PaymentGateway) -> None:
    """Install the gateway every request will use."""
    global _current_gateway
    _current_gateway = gateway


def get_gateway() -> PaymentGateway:
    return _current_gateway


def reset_gateway() -> None:
    """Return to the not-configured state."""
    global _current_gateway
    _current_gateway = UnconfiguredGateway()
