"""Tests for decoding verified webhook bodies."""

import json

import pytest

from commerce.errors import InvalidWebhookPayload
from commerce.webhook.events import WebhookEventKind, decode
from commerce.webhook.processor import WebhookProcessor


class TestDecode:
    @pytest.mark.parametrize("kind", list(WebhookEventKind))
    def test_every_known_kind_decodes(self, kind):
        name, event = decode(json.dumps({"event": kind.value, "payload": {}}).encode())
        assert name == kind.value
        assert event.kind is kind

    def test_entities_are_unwrapped(self):
        body = {
            "event": "payment.captured",
            "id": "evt_001",
            "payload": {"payment": {"entity": {"id": "pay_001", "notes": {"orderId": "ord-1"}}}},
        }
        _, event = decode(json.dumps(body).encode())
        assert event.event_id == "evt_001"
        assert event.entity("payment")["id"] == "pay_001"
        assert event.entity("refund") is None

    def test_missing_required_entity_is_invalid(self):
        _, event = decode(b'{"event": "refund.created", "payload": {}}')
        with pytest.raises(InvalidWebhookPayload):
            event.require_entity("refund")

    def test_unknown_event_name_decodes_to_none(self):
        name, event = decode(b'{"event": "subscription.charged"}')
        assert name == "subscription.charged"
        assert event is None

    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"payload": {}}', b'{"event": 5}', b"\xff\xfe"])
    def test_undecodable_bodies_are_invalid(self, body):
        with pytest.raises(InvalidWebhookPayload):
            decode(body)


class TestHandlerTable:
    def test_processor_handles_every_kind(self):
        processor = WebhookProcessor()
        assert set(processor._handlers) == set(WebhookEventKind)
