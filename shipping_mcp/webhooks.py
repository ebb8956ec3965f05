"""
Veeqo webhook intake: HMAC-SHA256 signature check, payload parsing and
invalidation of cached reads the event makes stale.

Delivery, queueing and replay are handled by whatever receives the HTTP
callback; this module only decides whether a payload is authentic and
what it touched.
"""

import hashlib
import hmac
import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from shipping_mcp.providers.base import validate_input
from shipping_mcp.services.client import ServiceClient
from shipping_mcp.services.errors import UnauthorizedError, ValidationError

SERVICE_ID = "veeqo"

# Cached resource families an event for each resource type makes stale
RESOURCE_FAMILIES: dict[str, tuple[str, ...]] = {
    "Order": ("/orders", "/allocations"),
    "Product": ("/products",),
    "Sellable": ("/products", "/sellables", "/stock_entries"),
    "StockEntry": ("/products", "/sellables", "/stock_entries"),
    "Customer": ("/customers",),
    "Shipment": ("/shipments", "/orders"),
}


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    event_type: str
    resource_type: str
    resource_id: int | str | None = None
    data: Any = None


def compute_signature(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of a hex HMAC-SHA256 signature (`sha256=` prefix allowed)."""
    if not secret or not signature:
        logger.warning("Webhook secret or signature missing")
        return False

    provided = signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256=") :]

    expected = compute_signature(payload, secret)
    valid = hmac.compare_digest(provided.lower(), expected)
    if not valid:
        logger.warning(
            f"Webhook signature mismatch (provided length {len(provided)}, "
            f"expected length {len(expected)})"
        )
    return valid


def parse_event(payload: bytes | str) -> WebhookEvent:
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ValidationError(
                "webhook payload is not valid UTF-8", service_id=SERVICE_ID
            ) from e
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise ValidationError(
            "webhook payload is not valid JSON", service_id=SERVICE_ID
        ) from e
    return validate_input(WebhookEvent, data, SERVICE_ID)


async def handle_webhook(
    payload: bytes | str,
    signature: str | None,
    secret: str,
    client: ServiceClient | None = None,
) -> dict[str, Any]:
    """
    Verify, parse and apply one webhook delivery.

    Raises:
        UnauthorizedError: signature missing or wrong
        ValidationError: payload malformed
    """
    raw = payload.encode() if isinstance(payload, str) else payload
    if not verify_signature(raw, signature, secret):
        raise UnauthorizedError(
            "invalid webhook signature",
            code="WEBHOOK_SIGNATURE_INVALID",
            service_id=SERVICE_ID,
        )

    event = parse_event(raw)
    families = RESOURCE_FAMILIES.get(event.resource_type, ())
    if not families:
        logger.warning(f"Unhandled webhook resource type: {event.resource_type}")

    invalidated = 0
    if client is not None:
        for family in families:
            invalidated += await client.clear_cache(family)

    logger.info(
        f"Webhook {event.event_type} for {event.resource_type} "
        f"{event.resource_id} processed, {invalidated} cached read(s) dropped"
    )
    return {
        "event_type": event.event_type,
        "resource_type": event.resource_type,
        "resource_id": event.resource_id,
        "invalidated": invalidated,
    }
