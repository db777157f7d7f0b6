"""Webhook event processor — authenticates gateway deliveries and applies them.

The gateway delivers at least once and may deliver the same event twice at
the same time. Every handler here funnels into the order writes in
``commerce.order.confirmation``, which hold the order's lock and are no-ops
when the effect is already present, so a redelivery converges to the same
state without a second notification.

Outcomes:
    - signature missing or wrong        → InvalidSignature (400, no retry)
    - no gateway / webhook secret        → PaymentGatewayNotConfigured (503)
    - body not decodable after verifying → InvalidWebhookPayload (400)
    - unknown event name or unknown order → acknowledged, logged
    - malformed timestamps or amounts     → acknowledged, logged
    - anything unexpected                → propagates (500, gateway retries)
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError

from commerce.errors import InvalidSignature, OrderNotFound, PaymentGatewayNotConfigured
from commerce.gateway import get_gateway
from commerce.gateway.port import PaymentGateway
from commerce.order.confirmation import confirm_payment, record_refund
from commerce.projections.order_lookup import find_order_id
from commerce.webhook.events import GatewayEvent, WebhookEventKind, decode

logger = structlog.get_logger(__name__)


def _from_epoch(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


def _from_minor_units(value) -> float | None:
    if value is None:
        return None
    return int(value) / 100


def _notes(entity: dict) -> dict:
    notes = entity.get("notes")
    return notes if isinstance(notes, dict) else {}


class WebhookProcessor:
    def __init__(self, gateway: PaymentGateway | None = None):
        self._gateway = gateway
        self._handlers = {
            WebhookEventKind.PAYMENT_CAPTURED: self._on_payment_captured,
            WebhookEventKind.PAYMENT_FAILED: self._on_payment_failed,
            WebhookEventKind.ORDER_PAID: self._on_order_paid,
            WebhookEventKind.REFUND_CREATED: self._on_refund_created,
            WebhookEventKind.REFUND_PROCESSED: self._on_refund_processed,
        }
        missing = [kind.value for kind in WebhookEventKind if kind not in self._handlers]
        if missing:
            raise RuntimeError(f"No webhook handler for {', '.join(missing)}")

    @property
    def gateway(self) -> PaymentGateway:
        return self._gateway or get_gateway()

    def process(self, raw_body: bytes, signature: str | None) -> str:
        """Verify, decode and apply one delivery.

        The body is not parsed until its signature has been checked against
        the exact bytes received.

        Returns:
            The event name, for the caller's log line.
        """
        if not signature:
            logger.warning("Webhook rejected: signature header missing")
            raise InvalidSignature("Missing webhook signature")

        gateway = self.gateway
        if not gateway.is_configured:
            logger.error("Webhook received but payment gateway is not configured")
            raise PaymentGatewayNotConfigured("Payment gateway is not configured")

        if not gateway.verify_webhook_signature(raw_body, signature):
            logger.warning("Webhook rejected: signature mismatch", body_bytes=len(raw_body))
            raise InvalidSignature("Invalid webhook signature")

        name, event = decode(raw_body)
        if event is None:
            logger.info("Webhook event ignored", webhook_event=name)
            return name

        logger.info("Webhook event received", webhook_event=name, event_id=event.event_id)
        try:
            self._handlers[event.kind](event)
        except OrderNotFound as exc:
            logger.warning("Webhook references unknown order", webhook_event=name, order_id=str(exc.order_id))
        except ValidationError as exc:
            # Redelivery cannot fix a rejected transition
            logger.error("Webhook event rejected by order", webhook_event=name, errors=exc.messages)
        except (ValueError, TypeError, OverflowError) as exc:
            # Malformed fields in a verified body; a redelivery carries the same bytes
            logger.error("Webhook event has malformed fields", webhook_event=name, error=str(exc))
        return name

    # -------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------
    def _on_payment_captured(self, event: GatewayEvent) -> None:
        payment = event.require_entity("payment")
        order_id = self._order_id_for_payment(payment)
        if order_id is None:
            logger.warning("Captured payment has no known order", payment_id=payment.get("id"))
            return

        # Gateway-level and payment-level secrets may differ
        if not self.gateway.verify_payment_signature(
            payment.get("order_id") or "",
            payment.get("id") or "",
            payment.get("signature") or "",
        ):
            logger.warning("Captured payment signature did not verify", order_id=order_id)
            return

        self._mark_paid(order_id, payment, source="webhook")

    def _on_payment_failed(self, event: GatewayEvent) -> None:
        payment = event.entity("payment") or {}
        logger.warning(
            "Payment failed at gateway",
            order_id=_notes(payment).get("orderId"),
            payment_id=payment.get("id"),
            reason=payment.get("error_description") or "Unknown error",
        )

    def _on_order_paid(self, event: GatewayEvent) -> None:
        gateway_order = event.require_entity("order")
        order_id = _notes(gateway_order).get("orderId") or find_order_id(
            gateway_order_id=gateway_order.get("id")
        )
        if order_id is None:
            logger.warning("Paid gateway order has no known order", gateway_order_id=gateway_order.get("id"))
            return

        self._mark_paid(order_id, event.entity("payment") or gateway_order, source="webhook")

    def _on_refund_created(self, event: GatewayEvent) -> None:
        refund = event.require_entity("refund")
        order_id = self._order_id_for_refund(refund)
        if order_id is None:
            return

        changed = record_refund(
            order_id,
            refund_id=refund.get("id"),
            amount=_from_minor_units(refund.get("amount")),
            status=refund.get("status") or "pending",
            created_at=_from_epoch(refund.get("created_at")),
            notes=_notes(refund) or None,
            create_only=True,
        )
        logger.info("Refund created via webhook", order_id=order_id, refund_id=refund.get("id"), changed=changed)

    def _on_refund_processed(self, event: GatewayEvent) -> None:
        refund = event.require_entity("refund")
        order_id = self._order_id_for_refund(refund)
        if order_id is None:
            return

        changed = record_refund(
            order_id,
            refund_id=refund.get("id"),
            amount=_from_minor_units(refund.get("amount")),
            status=refund.get("status") or "processed",
            created_at=_from_epoch(refund.get("created_at")),
            processed_at=_from_epoch(refund.get("processed_at") or event.created_at),
            notes=_notes(refund) or None,
        )
        logger.info("Refund processed via webhook", order_id=order_id, refund_id=refund.get("id"), changed=changed)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _order_id_for_payment(self, payment: dict) -> str | None:
        order_id = _notes(payment).get("orderId")
        if order_id:
            return order_id
        if payment.get("order_id"):
            return find_order_id(gateway_order_id=payment["order_id"])
        return None

    def _order_id_for_refund(self, refund: dict) -> str | None:
        payment_id = refund.get("payment_id")
        order_id = find_order_id(payment_id=payment_id) if payment_id else None
        if order_id is None:
            logger.warning("Refund for unknown payment", payment_id=payment_id)
        return order_id

    def _mark_paid(self, order_id, entity: dict, source: str) -> None:
        paid_now = confirm_payment(
            order_id,
            external_id=entity.get("id"),
            status=entity.get("status") or "captured",
            source=source,
            update_time=datetime.now(UTC).isoformat(),
            payer_email=entity.get("email"),
        )
        if paid_now:
            logger.info("Order marked paid via webhook", order_id=order_id)
        else:
            logger.info("Order already paid, webhook ignored", order_id=order_id)
