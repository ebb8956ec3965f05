"""
EasyPost MCP tools.

Tools:
  - create_shipment, get_shipment, get_shipment_rates, buy_shipment_label
  - refund_shipment, buy_insurance, track_shipment
  - validate_address, verify_address, get_smartrate_estimates
  - get_account, get_carriers
  - create_batch, add_shipments_to_batch, buy_batch, scan_form_create
  - get_customs_info, create_customs_info
  - health
"""

from typing import Any

from mcp.server.fastmcp import FastMCP

from shipping_mcp.providers.easypost import EasyPostProvider
from shipping_mcp.tools.base import ToolSet, run_tool
from shipping_mcp.utils import log_tool_call


class EasyPostTools(ToolSet):
    TOOLS = (
        ("create_shipment", "Create a shipment and get carrier rates"),
        ("get_shipment", "Fetch a shipment by id"),
        ("get_shipment_rates", "List the rates of an existing shipment"),
        ("buy_shipment_label", "Buy a label for a shipment using one of its rates"),
        ("refund_shipment", "Request a refund for a purchased label"),
        ("buy_insurance", "Insure a purchased shipment for a given amount"),
        ("track_shipment", "Create a tracker for a tracking code"),
        ("validate_address", "Create an address and verify it is deliverable"),
        ("verify_address", "Strictly verify an address; fails if undeliverable"),
        ("get_smartrate_estimates", "Time-in-transit estimates between two zips"),
        ("get_account", "Fetch the EasyPost account"),
        ("get_carriers", "List available carrier types"),
        ("create_batch", "Create a batch, optionally with shipments"),
        ("add_shipments_to_batch", "Add shipments to a batch"),
        ("buy_batch", "Buy labels for every shipment in a batch"),
        ("scan_form_create", "Create a scan form (manifest) for shipments"),
        ("get_customs_info", "Fetch a customs info by id"),
        ("create_customs_info", "Create a customs info for international shipments"),
    )
    RESOURCES = (
        ("easypost://account", "account_resource", "EasyPost account details"),
        ("easypost://carriers", "carriers_resource", "Available carrier types"),
    )

    provider: EasyPostProvider

    def __init__(self, provider: EasyPostProvider):
        super().__init__(provider)

    @property
    def server_name(self) -> str:
        return "easypost-mcp"

    @property
    def instructions(self) -> str:
        return (
            "Shipping tools backed by the EasyPost API. Every tool returns "
            "{success, data} or {success: false, error: {kind, code, message}}."
        )

    @log_tool_call
    async def create_shipment(
        self,
        to_address: dict[str, Any],
        from_address: dict[str, Any],
        parcel: dict[str, Any],
        customs_info: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
        reference: str | None = None,
    ) -> dict[str, Any]:
        request = {
            "to_address": to_address,
            "from_address": from_address,
            "parcel": parcel,
            "customs_info": customs_info,
            "options": options,
            "reference": reference,
        }
        return await run_tool(self.provider.create_shipment(request))

    @log_tool_call
    async def get_shipment(self, shipment_id: str) -> dict[str, Any]:
        return await run_tool(self.provider.get_shipment(shipment_id))

    @log_tool_call
    async def get_shipment_rates(self, shipment_id: str) -> dict[str, Any]:
        return await run_tool(self.provider.get_shipment_rates(shipment_id))

    @log_tool_call
    async def buy_shipment_label(
        self, shipment_id: str, rate_id: str, insurance: str | None = None
    ) -> dict[str, Any]:
        return await run_tool(
            self.provider.buy_shipment_label(shipment_id, rate_id, insurance)
        )

    @log_tool_call
    async def refund_shipment(self, shipment_id: str) -> dict[str, Any]:
        return await run_tool(self.provider.refund_shipment(shipment_id))

    @log_tool_call
    async def buy_insurance(self, shipment_id: str, amount: str) -> dict[str, Any]:
        return await run_tool(self.provider.buy_insurance(shipment_id, amount))

    @log_tool_call
    async def track_shipment(
        self, tracking_code: str, carrier: str | None = None
    ) -> dict[str, Any]:
        return await run_tool(self.provider.track_shipment(tracking_code, carrier))

    @log_tool_call
    async def validate_address(self, address: dict[str, Any]) -> dict[str, Any]:
        return await run_tool(self.provider.create_address(address, verify=True))

    @log_tool_call
    async def verify_address(self, address: dict[str, Any]) -> dict[str, Any]:
        return await run_tool(self.provider.verify_address(address))

    @log_tool_call
    async def get_smartrate_estimates(
        self,
        from_zip: str,
        to_zip: str,
        planned_ship_date: str | None = None,
        carriers: list[str] | None = None,
    ) -> dict[str, Any]:
        request = {
            "from_zip": from_zip,
            "to_zip": to_zip,
            "planned_ship_date": planned_ship_date,
            "carriers": carriers,
        }
        return await run_tool(self.provider.get_smartrate_estimates(request))

    @log_tool_call
    async def get_account(self) -> dict[str, Any]:
        return await run_tool(self.provider.get_account())

    @log_tool_call
    async def get_carriers(self) -> dict[str, Any]:
        return await run_tool(self.provider.get_carriers())

    @log_tool_call
    async def create_batch(self, shipment_ids: list[str] | None = None) -> dict[str, Any]:
        return await run_tool(self.provider.create_batch(shipment_ids))

    @log_tool_call
    async def add_shipments_to_batch(
        self, batch_id: str, shipment_ids: list[str]
    ) -> dict[str, Any]:
        return await run_tool(self.provider.add_shipments_to_batch(batch_id, shipment_ids))

    @log_tool_call
    async def buy_batch(self, batch_id: str) -> dict[str, Any]:
        return await run_tool(self.provider.buy_batch(batch_id))

    @log_tool_call
    async def scan_form_create(self, shipment_ids: list[str]) -> dict[str, Any]:
        return await run_tool(self.provider.create_scan_form(shipment_ids))

    @log_tool_call
    async def get_customs_info(self, customs_info_id: str) -> dict[str, Any]:
        return await run_tool(self.provider.get_customs_info(customs_info_id))

    @log_tool_call
    async def create_customs_info(self, customs_info: dict[str, Any]) -> dict[str, Any]:
        return await run_tool(self.provider.create_customs_info(customs_info))

    async def account_resource(self) -> str:
        return await self._resource(self.provider.get_account())

    async def carriers_resource(self) -> str:
        return await self._resource(self.provider.get_carriers())


def build_server(provider: EasyPostProvider) -> FastMCP:
    return EasyPostTools(provider).build_server()
