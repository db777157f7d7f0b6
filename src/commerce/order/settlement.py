"""Payment settlement — intents, client-side verification and refunds.

These are the gateway-facing operations on an order. Each one checks that a
gateway is configured before calling it, so "not configured" surfaces as
``PaymentGatewayNotConfigured`` (503) and never as a transient failure.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError

from commerce.errors import InvalidSignature, PaymentGatewayNotConfigured, RefundExceedsTotal
from commerce.gateway import get_gateway
from commerce.gateway.port import IntentResult
from commerce.order.confirmation import confirm_payment, load_order, order_locks, record_intent, record_refund
from commerce.order.order import GATEWAY_PAYMENT_METHODS, PaymentMethod

logger = structlog.get_logger(__name__)

SUPPORTED_CURRENCIES = ("INR", "USD", "EUR")
MIN_PAYMENT_AMOUNT = 1
MAX_PAYMENT_AMOUNT = 1_000_000


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def _configured_gateway():
    gateway = get_gateway()
    if not gateway.is_configured:
        raise PaymentGatewayNotConfigured("Payment gateway is not configured")
    return gateway


def open_intent(order_id, amount: float, currency: str, payment_method: str | None = None) -> IntentResult:
    """Open a gateway intent for the order's full amount.

    Raises:
        ValidationError: unsupported currency or method, out-of-range amount,
            amount not matching the order, or an order that cannot take payment.
        PaymentGatewayNotConfigured: no gateway credentials.
        GatewayUnavailable: the gateway failed or timed out.
    """
    if currency not in SUPPORTED_CURRENCIES:
        raise ValidationError({"currency": [f"Currency must be one of {', '.join(SUPPORTED_CURRENCIES)}"]})
    if not MIN_PAYMENT_AMOUNT <= amount <= MAX_PAYMENT_AMOUNT:
        raise ValidationError({"amount": [f"Amount must be between {MIN_PAYMENT_AMOUNT} and {MAX_PAYMENT_AMOUNT}"]})

    order = load_order(order_id)
    method = payment_method or order.payment_method
    if method not in {m.value for m in GATEWAY_PAYMENT_METHODS} or order.payment_method != method:
        raise ValidationError({"payment_method": [f"{method} is not paid through the gateway"]})
    if order.is_paid:
        raise ValidationError({"order": ["Order is already paid"]})
    if abs(amount - order.total_price) > 0.01:
        raise ValidationError({"amount": [f"Amount {amount} does not match order total {order.total_price}"]})

    gateway = _configured_gateway()
    intent = gateway.create_intent(
        amount=to_minor_units(amount),
        currency=currency,
        receipt=f"order_{order.id}",
        notes={"orderId": str(order.id), "userId": str(order.user_id)},
    )
    record_intent(order.id, intent.intent_id, amount, intent.currency)
    logger.info("Payment intent opened", order_id=str(order.id), intent_id=intent.intent_id)
    return intent


def verify_client_payment(order_id, gateway_order_id, gateway_payment_id, signature, payer_email=None) -> bool:
    """Confirm a payment the client completed with the gateway.

    The signature covers ``gateway_order_id|gateway_payment_id`` under the key
    secret. Returns True when this call paid the order and False when it was
    already paid.
    """
    gateway = _configured_gateway()
    if not gateway.verify_payment_signature(gateway_order_id, gateway_payment_id, signature):
        logger.warning("Payment signature rejected", order_id=str(order_id))
        raise InvalidSignature("Invalid payment signature")

    # A valid signature only vouches for the gateway order it was issued for
    order = load_order(order_id)
    if not order.gateway_order_id or order.gateway_order_id != gateway_order_id:
        logger.warning(
            "Payment signature belongs to another gateway order",
            order_id=str(order_id),
            gateway_order_id=gateway_order_id,
        )
        raise InvalidSignature("Invalid payment signature")

    return confirm_payment(
        order_id,
        external_id=gateway_payment_id,
        status="completed",
        source="verification",
        update_time=datetime.now(UTC).isoformat(),
        payer_email=payer_email,
    )


def request_refund(order_id, amount: float | None = None, reason: str | None = None, notes: dict | None = None):
    """Refund a paid order through the gateway and record the refund.

    The amount defaults to the order total and is checked against it before
    the gateway is called. The order's lock is held from the check until the
    refund is recorded, so concurrent requests reach the gateway once.

    Returns:
        The order after the refund was recorded.
    """
    with order_locks.hold(order_id):
        return _refund_locked(order_id, amount, reason, notes)


def _refund_locked(order_id, amount, reason, notes):
    order = load_order(order_id)
    if not order.is_paid or order.payment_result is None:
        raise ValidationError({"order": ["Only paid orders can be refunded"]})
    if order.refund is not None:
        raise ValidationError({"order": [f"Order already has refund {order.refund.refund_id}"]})

    amount = order.total_price if amount is None else amount
    if amount <= 0:
        raise ValidationError({"amount": ["Refund amount must be positive"]})
    if amount > order.total_price:
        raise RefundExceedsTotal(amount, order.total_price)

    gateway = _configured_gateway()
    refund_notes = {"orderId": str(order.id), "reason": reason or "Refund requested", **(notes or {})}
    result = gateway.create_refund(
        payment_id=order.payment_result.external_id,
        amount=to_minor_units(amount),
        notes=refund_notes,
    )

    record_refund(
        order.id,
        refund_id=result.refund_id,
        amount=amount,
        status=result.status,
        created_at=datetime.now(UTC),
        notes=refund_notes,
    )
    logger.info("Refund requested", order_id=str(order.id), refund_id=result.refund_id, status=result.status)
    return load_order(order.id)


def is_gateway_method(payment_method: str) -> bool:
    return PaymentMethod(payment_method) in GATEWAY_PAYMENT_METHODS
