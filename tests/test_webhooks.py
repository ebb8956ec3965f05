import json

import pytest

from conftest import Upstream, json_response
from shipping_mcp.services.errors import UnauthorizedError, ValidationError
from shipping_mcp.webhooks import (
    compute_signature,
    handle_webhook,
    parse_event,
    verify_signature,
)

SECRET = "whsec_test"


def signed(event: dict) -> tuple[bytes, str]:
    payload = json.dumps(event).encode()
    return payload, compute_signature(payload, SECRET)


class TestVerifySignature:
    def test_valid(self):
        payload, signature = signed({"event_type": "order_created"})
        assert verify_signature(payload, signature, SECRET)

    def test_prefixed_and_uppercase(self):
        payload, signature = signed({"event_type": "order_created"})
        assert verify_signature(payload, f"sha256={signature.upper()}", SECRET)

    def test_tampered_payload(self):
        payload, signature = signed({"event_type": "order_created"})
        assert not verify_signature(payload + b" ", signature, SECRET)

    def test_missing_secret_or_signature(self):
        payload, signature = signed({})
        assert not verify_signature(payload, signature, "")
        assert not verify_signature(payload, None, SECRET)


class TestParseEvent:
    def test_parses_event(self):
        event = parse_event(b'{"event_type": "product_updated", "resource_type": "Product", "resource_id": 7}')
        assert event.event_type == "product_updated"
        assert event.resource_id == 7

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="not valid JSON"):
            parse_event(b"{nope")

    def test_invalid_utf8(self):
        with pytest.raises(ValidationError):
            parse_event(b"\xff\xfe")

    def test_missing_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_event(b'{"event_type": "order_created"}')
        fields = [e["field"] for e in exc_info.value.details["errors"]]
        assert "resource_type" in fields


class TestHandleWebhook:
    async def test_bad_signature_rejected(self):
        payload, _ = signed({"event_type": "order_created", "resource_type": "Order"})

        with pytest.raises(UnauthorizedError) as exc_info:
            await handle_webhook(payload, "deadbeef", SECRET)

        assert exc_info.value.code == "WEBHOOK_SIGNATURE_INVALID"

    async def test_order_event_drops_cached_orders(self, make_client):
        upstream = Upstream(json_response(200, {"id": 1}))
        client = make_client(upstream, service_id="veeqo")
        await client.get("/orders/1")
        await client.get("/orders", params={"page": 1})
        await client.get("/products/5")

        payload, signature = signed(
            {"event_type": "order_updated", "resource_type": "Order", "resource_id": 1}
        )
        result = await handle_webhook(payload, signature, SECRET, client=client)

        assert result == {
            "event_type": "order_updated",
            "resource_type": "Order",
            "resource_id": 1,
            "invalidated": 2,
        }
        assert "veeqo:GET:/products/5" in client.cache.memory

    async def test_unknown_resource_type_is_accepted(self):
        payload, signature = signed({"event_type": "ping", "resource_type": "Heartbeat"})

        result = await handle_webhook(payload.decode(), signature, SECRET)

        assert result["invalidated"] == 0
