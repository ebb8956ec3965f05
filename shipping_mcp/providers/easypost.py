"""
EasyPost REST shim.

API Documentation: https://docs.easypost.com/docs
Auth: HTTP Basic with the API key as user name.
"""

from typing import Any

from loguru import logger

from shipping_mcp.providers.base import BaseProvider
from shipping_mcp.providers.models import (
    Address,
    CreateShipmentRequest,
    CustomsInfo,
    SmartrateRequest,
    TrackRequest,
)
from shipping_mcp.services.errors import ValidationError


class EasyPostProvider(BaseProvider):
    """Shipments, rates, labels, tracking, addresses, batches and customs."""

    SERVICE_ID = "easypost"

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    # Shipments

    async def create_shipment(self, request: CreateShipmentRequest | dict) -> Any:
        shipment = self.validate(CreateShipmentRequest, request)
        logger.info(
            f"Creating shipment {shipment.from_address.country} -> "
            f"{shipment.to_address.country} ({shipment.parcel.weight} oz)"
        )
        return await self.client.post("/shipments", {"shipment": shipment.payload()})

    async def get_shipment(self, shipment_id: str) -> Any:
        shipment_id = self.require_id(shipment_id, "shipment_id")
        return await self.client.get(f"/shipments/{shipment_id}")

    async def get_shipment_rates(self, shipment_id: str) -> list[dict[str, Any]]:
        """Rates come embedded in the shipment."""
        shipment = await self.get_shipment(shipment_id)
        rates = shipment.get("rates") if isinstance(shipment, dict) else None
        return rates or []

    async def buy_shipment_label(
        self, shipment_id: str, rate_id: str, insurance: str | None = None
    ) -> Any:
        shipment_id = self.require_id(shipment_id, "shipment_id")
        rate_id = self.require_id(rate_id, "rate_id")
        body: dict[str, Any] = {"rate": {"id": rate_id}}
        if insurance is not None:
            body["insurance"] = insurance
        return await self.client.post(f"/shipments/{shipment_id}/buy", body)

    async def refund_shipment(self, shipment_id: str) -> Any:
        shipment_id = self.require_id(shipment_id, "shipment_id")
        return await self.client.post(f"/shipments/{shipment_id}/refund")

    async def buy_insurance(self, shipment_id: str, amount: str | float) -> Any:
        shipment_id = self.require_id(shipment_id, "shipment_id")
        try:
            value = float(amount)
        except (TypeError, ValueError):
            value = -1.0
        if value <= 0:
            raise ValidationError(
                "amount must be a positive number",
                details={"errors": [{"field": "amount", "message": "must be > 0"}]},
                service_id=self.service_id,
            )
        return await self.client.post(
            f"/shipments/{shipment_id}/insure", {"amount": f"{value:.2f}"}
        )

    # Tracking and rates

    async def track_shipment(self, tracking_code: str, carrier: str | None = None) -> Any:
        request = self.validate(
            TrackRequest, {"tracking_code": tracking_code, "carrier": carrier}
        )
        return await self.client.post("/trackers", {"tracker": request.payload()})

    async def get_smartrate_estimates(self, request: SmartrateRequest | dict) -> Any:
        smartrate = self.validate(SmartrateRequest, request)
        body = smartrate.payload()
        body.setdefault("carriers", ["USPS", "UPS", "FedEx"])
        return await self.client.post("/smartrate/deliver_by", body)

    # Addresses

    async def create_address(self, address: Address | dict, verify: bool = False) -> Any:
        """Create an address; `verify` asks EasyPost to verify delivery."""
        model = self.validate(Address, address)
        body: dict[str, Any] = {"address": model.payload()}
        if verify:
            body["verify"] = ["delivery"]
        return await self.client.post("/addresses", body)

    async def verify_address(self, address: Address | dict) -> Any:
        """Strict verification: EasyPost rejects undeliverable addresses."""
        model = self.validate(Address, address)
        return await self.client.post(
            "/addresses", {"address": model.payload(), "verify_strict": ["delivery"]}
        )

    # Account

    async def get_account(self) -> Any:
        return await self.client.get("/account")

    async def get_carriers(self) -> Any:
        return await self.client.get("/carrier_types")

    # Batches and scan forms

    async def create_batch(self, shipment_ids: list[str] | None = None) -> Any:
        shipments = [
            {"id": self.require_id(sid, "shipment_ids")} for sid in shipment_ids or []
        ]
        return await self.client.post("/batches", {"batch": {"shipments": shipments}})

    async def add_shipments_to_batch(self, batch_id: str, shipment_ids: list[str]) -> Any:
        batch_id = self.require_id(batch_id, "batch_id")
        if not shipment_ids:
            raise ValidationError(
                "shipment_ids must not be empty",
                details={"errors": [{"field": "shipment_ids", "message": "empty"}]},
                service_id=self.service_id,
            )
        shipments = [{"id": self.require_id(sid, "shipment_ids")} for sid in shipment_ids]
        return await self.client.post(
            f"/batches/{batch_id}/add_shipments", {"shipments": shipments}
        )

    async def buy_batch(self, batch_id: str) -> Any:
        batch_id = self.require_id(batch_id, "batch_id")
        return await self.client.post(f"/batches/{batch_id}/buy")

    async def create_scan_form(self, shipment_ids: list[str]) -> Any:
        if not shipment_ids:
            raise ValidationError(
                "shipment_ids must not be empty",
                details={"errors": [{"field": "shipment_ids", "message": "empty"}]},
                service_id=self.service_id,
            )
        shipments = [{"id": self.require_id(sid, "shipment_ids")} for sid in shipment_ids]
        return await self.client.post("/scan_forms", {"shipments": shipments})

    # Customs

    async def create_customs_info(self, customs: CustomsInfo | dict) -> Any:
        model = self.validate(CustomsInfo, customs)
        return await self.client.post("/customs_infos", {"customs_info": model.payload()})

    async def get_customs_info(self, customs_info_id: str) -> Any:
        customs_info_id = self.require_id(customs_info_id, "customs_info_id")
        return await self.client.get(f"/customs_infos/{customs_info_id}")
