import json

import httpx
import pytest

from conftest import Upstream, json_response
from shipping_mcp.providers import EasyPostProvider, VeeqoProvider
from shipping_mcp.services.errors import ErrorKind, RateLimitError, ValidationError
from shipping_mcp.tools import ERROR_CODES, EasyPostTools, VeeqoTools, run_tool
from shipping_mcp.webhooks import compute_signature


@pytest.fixture
def easypost_tools(make_client):
    def _make(upstream: Upstream) -> EasyPostTools:
        client = make_client(upstream, service_id="easypost", auth_style="basic", max_retries=1)
        return EasyPostTools(EasyPostProvider(client))

    return _make


@pytest.fixture
def veeqo_tools(make_client):
    def _make(upstream: Upstream, secret: str = "whsec") -> VeeqoTools:
        client = make_client(upstream, service_id="veeqo", auth_style="api-key", max_retries=1)
        return VeeqoTools(VeeqoProvider(client), webhook_secret=secret)

    return _make


class TestRunTool:
    async def test_success(self):
        async def op():
            return {"id": 1}

        assert await run_tool(op()) == {"success": True, "data": {"id": 1}}

    async def test_domain_error(self):
        async def op():
            raise RateLimitError("rate limited", status=429, retry_after=2.0)

        result = await run_tool(op())

        assert result["success"] is False
        assert result["error"]["kind"] == "rate-limited"
        assert result["error"]["code"] == -32029
        assert result["error"]["status"] == 429
        assert result["error"]["provider_code"] == "HTTP_429"

    async def test_unexpected_error_hides_detail(self, log_records):
        async def op():
            raise KeyError("secret internals")

        result = await run_tool(op())

        assert result["error"]["kind"] == "internal"
        assert result["error"]["code"] == -32603
        assert "secret internals" not in json.dumps(result)
        assert any(r["level"].name == "ERROR" for r in log_records)


def test_error_codes_are_distinct_per_client_kind():
    surfaced = [kind for kind in ErrorKind if kind is not ErrorKind.CACHE_UNAVAILABLE]
    codes = [ERROR_CODES[kind] for kind in surfaced]
    assert len(set(codes)) == len(codes)
    assert ERROR_CODES[ErrorKind.VALIDATION] == -32602


class TestEasyPostTools:
    async def test_get_shipment_envelope(self, easypost_tools):
        tools = easypost_tools(Upstream(json_response(200, {"id": "shp_1"})))

        assert await tools.get_shipment("shp_1") == {"success": True, "data": {"id": "shp_1"}}

    async def test_validation_envelope(self, easypost_tools):
        upstream = Upstream(json_response(201, {}))
        tools = easypost_tools(upstream)

        result = await tools.create_shipment(
            to_address={"city": "Redondo Beach", "zip": "90277"},
            from_address={"street1": "417 Montgomery St", "city": "SF", "zip": "94104"},
            parcel={"weight": 10},
        )

        assert result["success"] is False
        assert result["error"]["kind"] == "validation"
        assert result["error"]["code"] == -32602
        assert result["error"]["details"]["errors"][0]["field"] == "to_address.street1"
        assert upstream.calls == 0

    async def test_upstream_unavailable_envelope(self, easypost_tools):
        tools = easypost_tools(Upstream(json_response(503)))

        result = await tools.get_account()

        assert result["error"]["kind"] == "upstream-unavailable"
        assert result["error"]["code"] == -32003
        assert result["error"]["message"] == "upstream unavailable"

    async def test_timeout_envelope(self, easypost_tools):
        tools = easypost_tools(Upstream(httpx.ConnectTimeout))

        result = await tools.get_carriers()

        assert result["error"]["kind"] == "transport-timeout"
        assert result["error"]["code"] == -32008

    async def test_health(self, easypost_tools):
        tools = easypost_tools(Upstream(json_response(200, {"id": "user_1"})))

        result = await tools.health()

        assert result["success"] is True
        assert result["data"]["healthy"] is True
        assert result["data"]["configured"] is True
        assert result["data"]["stats"]["service_id"] == "easypost"

    async def test_account_resource_is_json(self, easypost_tools):
        tools = easypost_tools(Upstream(json_response(200, {"id": "user_1"})))

        assert json.loads(await tools.account_resource()) == {
            "success": True,
            "data": {"id": "user_1"},
        }

    async def test_server_registers_tools_and_resources(self, easypost_tools):
        server = easypost_tools(Upstream(json_response(200, {}))).build_server()

        names = {tool.name for tool in await server.list_tools()}
        assert names == {name for name, _ in EasyPostTools.TOOLS} | {"health"}

        uris = {str(resource.uri).rstrip("/") for resource in await server.list_resources()}
        assert uris == {"easypost://account", "easypost://carriers"}


class TestVeeqoTools:
    async def test_create_order_maps_line_items(self, veeqo_tools):
        upstream = Upstream(json_response(201, {"id": 10}))
        tools = veeqo_tools(upstream)

        result = await tools.create_order(
            channel_id=1, line_items=[{"sellable_id": 2, "quantity": 1}]
        )

        assert result == {"success": True, "data": {"id": 10}}
        sent = json.loads(upstream.requests[0].read())
        assert sent["order"]["line_items_attributes"] == [{"sellable_id": 2, "quantity": 1}]

    async def test_not_found_envelope(self, veeqo_tools):
        tools = veeqo_tools(Upstream(json_response(404, {"error": "Order not found"})))

        result = await tools.get_order(404)

        assert result["error"]["kind"] == "not-found"
        assert result["error"]["code"] == -32004
        assert result["error"]["message"] == "Order not found"

    async def test_unauthorized_envelope(self, veeqo_tools):
        tools = veeqo_tools(Upstream(json_response(401)))

        result = await tools.list_orders()

        assert result["error"]["kind"] == "unauthorized"
        assert result["error"]["code"] == -32001

    async def test_process_webhook(self, veeqo_tools):
        tools = veeqo_tools(Upstream(json_response(200, {"id": 1})), secret="whsec")
        await tools.get_product(1)
        payload = json.dumps(
            {"event_type": "product_updated", "resource_type": "Product", "resource_id": 1}
        )

        result = await tools.process_webhook(payload, compute_signature(payload.encode(), "whsec"))

        assert result["success"] is True
        assert result["data"]["invalidated"] == 1

    async def test_process_webhook_bad_signature(self, veeqo_tools):
        tools = veeqo_tools(Upstream(json_response(200, {})), secret="whsec")

        result = await tools.process_webhook("{}", "sha256=00")

        assert result["error"]["kind"] == "unauthorized"
        assert result["error"]["provider_code"] == "WEBHOOK_SIGNATURE_INVALID"

    async def test_bulk_update_inventory_envelope(self, veeqo_tools):
        tools = veeqo_tools(Upstream(json_response(200, {"physical_stock_level": 4})))

        result = await tools.bulk_update_inventory(
            [
                {"sellable_id": 1, "warehouse_id": 2, "physical_stock_level": 4},
                {"sellable_id": 1, "warehouse_id": 2, "physical_stock_level": -1},
            ]
        )

        assert result["success"] is True
        assert result["data"]["success_count"] == 1
        assert result["data"]["errors"][0]["error"]["kind"] == "validation"

    async def test_bulk_create_products_empty_is_invalid_params(self, veeqo_tools):
        result = await veeqo_tools(Upstream(json_response(201, {}))).bulk_create_products([])

        assert result["success"] is False
        assert result["error"]["code"] == -32602

    async def test_server_tool_names(self, veeqo_tools):
        server = veeqo_tools(Upstream(json_response(200, {}))).build_server()

        names = {tool.name for tool in await server.list_tools()}
        assert "process_webhook" in names
        assert "update_stock" in names
        assert "bulk_update_inventory" in names
        assert len(names) == len(VeeqoTools.TOOLS) + 1


def test_validation_error_maps_to_invalid_params():
    assert ERROR_CODES[ValidationError.kind] == -32602
