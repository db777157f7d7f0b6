"""Gateway webhook events — the closed set of kinds this service acts on.

Only bodies whose signature has already been verified are decoded here.
"""

import json
from dataclasses import dataclass, field
from enum import Enum

from commerce.errors import InvalidWebhookPayload


class WebhookEventKind(Enum):
    PAYMENT_CAPTURED = "payment.captured"
    PAYMENT_FAILED = "payment.failed"
    ORDER_PAID = "order.paid"
    REFUND_CREATED = "refund.created"
    REFUND_PROCESSED = "refund.processed"


@dataclass(frozen=True)
class GatewayEvent:
    """A decoded webhook delivery.

    ``payload`` is the gateway's ``payload`` object, keyed by entity type
    (``payment``, ``order``, ``refund``), each wrapping an ``entity`` dict.
    """

    kind: WebhookEventKind
    payload: dict = field(default_factory=dict)
    event_id: str | None = None
    created_at: int | None = None

    def entity(self, name: str) -> dict | None:
        wrapper = self.payload.get(name)
        if not isinstance(wrapper, dict):
            return None
        entity = wrapper.get("entity")
        return entity if isinstance(entity, dict) else None

    def require_entity(self, name: str) -> dict:
        entity = self.entity(name)
        if entity is None:
            raise InvalidWebhookPayload(f"{self.kind.value} event has no {name} entity")
        return entity


def decode(raw_body: bytes) -> tuple[str, GatewayEvent | None]:
    """Parse a verified webhook body.

    Returns the event name and the decoded event, or ``None`` in place of the
    event when the name is not one of ``WebhookEventKind``.

    Raises:
        InvalidWebhookPayload: the body is not a JSON object with an
            ``event`` name.
    """
    try:
        body = json.loads(raw_body)
    except (TypeError, ValueError, UnicodeDecodeError) as exc:
        raise InvalidWebhookPayload("Webhook body is not valid JSON") from exc

    if not isinstance(body, dict) or not isinstance(body.get("event"), str):
        raise InvalidWebhookPayload("Webhook body has no event name")

    name = body["event"]
    try:
        kind = WebhookEventKind(name)
    except ValueError:
        return name, None

    payload = body.get("payload")
    return name, GatewayEvent(
        kind=kind,
        payload=payload if isinstance(payload, dict) else {},
        event_id=body.get("id"),
        created_at=body.get("created_at"),
    )
