"""
Veeqo REST shim for orders, products, inventory, customers and warehouses.

API Documentation: https://developers.veeqo.com/
Auth: `x-api-key` header.
"""

from typing import Any

from loguru import logger

from shipping_mcp.providers.base import BaseProvider
from shipping_mcp.providers.models import (
    CreateCustomerRequest,
    CreateOrderRequest,
    CreateProductRequest,
    CreateVeeqoShipmentRequest,
    CustomerSearchParams,
    OrderSearchParams,
    ProductSearchParams,
    StockUpdate,
    UpdateOrderRequest,
    UpdateProductRequest,
)
from shipping_mcp.services.errors import DomainError, ValidationError

# Resources a stock change is visible through
STOCK_VIEWS = ("/products", "/stock_entries")


def _as_list(response: Any) -> list[Any]:
    return response if isinstance(response, list) else []


class VeeqoProvider(BaseProvider):
    """Order and inventory management operations."""

    SERVICE_ID = "veeqo"

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    # Orders

    async def list_orders(self, params: OrderSearchParams | dict | None = None) -> list[Any]:
        search = self.validate(OrderSearchParams, params or {})
        return _as_list(await self.client.get("/orders", search.payload()))

    async def get_order(self, order_id: int | str) -> Any:
        order_id = self.require_id(order_id, "order_id")
        return await self.client.get(f"/orders/{order_id}")

    async def create_order(self, request: CreateOrderRequest | dict) -> Any:
        order = self.validate(CreateOrderRequest, request)
        logger.info(
            f"Creating order on channel {order.channel_id} "
            f"with {len(order.line_items_attributes)} line item(s)"
        )
        return await self.client.post("/orders", order.payload())

    async def update_order(self, order_id: int | str, updates: UpdateOrderRequest | dict) -> Any:
        order_id = self.require_id(order_id, "order_id")
        model = self.validate(UpdateOrderRequest, updates)
        return await self.client.put(f"/orders/{order_id}", model.payload())

    # Products

    async def list_products(
        self, params: ProductSearchParams | dict | None = None
    ) -> list[Any]:
        search = self.validate(ProductSearchParams, params or {})
        return _as_list(await self.client.get("/products", search.payload()))

    async def get_product(self, product_id: int | str) -> Any:
        product_id = self.require_id(product_id, "product_id")
        return await self.client.get(f"/products/{product_id}")

    async def create_product(self, request: CreateProductRequest | dict) -> Any:
        product = self.validate(CreateProductRequest, request)
        return await self.client.post("/products", product.payload())

    async def update_product(
        self, product_id: int | str, updates: UpdateProductRequest | dict
    ) -> Any:
        product_id = self.require_id(product_id, "product_id")
        model = self.validate(UpdateProductRequest, updates)
        return await self.client.put(f"/products/{product_id}", model.payload())

    # Inventory

    async def list_stock_entries(
        self, warehouse_id: int | None = None, sellable_id: int | None = None
    ) -> list[Any]:
        params = {"warehouse_id": warehouse_id, "sellable_id": sellable_id}
        return _as_list(await self.client.get("/stock_entries", params))

    async def update_stock(
        self,
        sellable_id: int | str,
        warehouse_id: int | str,
        update: StockUpdate | dict,
    ) -> Any:
        sellable_id = self.require_id(sellable_id, "sellable_id")
        warehouse_id = self.require_id(warehouse_id, "warehouse_id")
        model = self.validate(StockUpdate, update)
        try:
            return await self.client.put(
                f"/sellables/{sellable_id}/stock_entries/{warehouse_id}",
                model.payload(),
            )
        finally:
            for view in STOCK_VIEWS:
                await self.client.clear_cache(view)

    # Bulk operations

    async def bulk_update_inventory(self, updates: list[dict[str, Any]]) -> dict[str, Any]:
        """
        Apply several stock updates one by one.

        Each item needs `sellable_id`, `warehouse_id` and a stock field. A
        failing item is recorded and does not stop the rest.
        """
        self._require_items(updates, "updates")
        results: dict[str, Any] = {"success_count": 0, "error_count": 0, "errors": []}
        for item in updates:
            try:
                if not isinstance(item, dict):
                    raise ValidationError(
                        "each update must be an object", service_id=self.service_id
                    )
                stock = {
                    k: v
                    for k, v in item.items()
                    if k not in ("sellable_id", "warehouse_id")
                }
                await self.update_stock(
                    item.get("sellable_id"), item.get("warehouse_id"), stock
                )
            except DomainError as e:
                results["error_count"] += 1
                results["errors"].append({"update": item, "error": e.to_dict()})
            else:
                results["success_count"] += 1

        logger.info(
            f"Bulk inventory update: {results['success_count']} ok, "
            f"{results['error_count']} failed"
        )
        return results

    async def bulk_create_products(self, products: list[dict[str, Any]]) -> dict[str, Any]:
        """Create several products; failures are collected per product."""
        self._require_items(products, "products")
        results: dict[str, Any] = {
            "success_count": 0,
            "error_count": 0,
            "created_products": [],
            "errors": [],
        }
        for item in products:
            try:
                created = await self.create_product(item)
            except DomainError as e:
                results["error_count"] += 1
                results["errors"].append({"product": item, "error": e.to_dict()})
            else:
                results["success_count"] += 1
                results["created_products"].append(created)

        logger.info(
            f"Bulk product create: {results['success_count']} ok, "
            f"{results['error_count']} failed"
        )
        return results

    def _require_items(self, items: Any, name: str) -> None:
        if not isinstance(items, list) or not items:
            raise ValidationError(
                f"{name} must be a non-empty list",
                details={"errors": [{"field": name, "message": "empty"}]},
                service_id=self.service_id,
            )

    # Customers

    async def list_customers(
        self, params: CustomerSearchParams | dict | None = None
    ) -> list[Any]:
        search = self.validate(CustomerSearchParams, params or {})
        return _as_list(await self.client.get("/customers", search.payload()))

    async def get_customer(self, customer_id: int | str) -> Any:
        customer_id = self.require_id(customer_id, "customer_id")
        return await self.client.get(f"/customers/{customer_id}")

    async def create_customer(self, request: CreateCustomerRequest | dict) -> Any:
        customer = self.validate(CreateCustomerRequest, request)
        return await self.client.post("/customers", customer.payload())

    # Warehouses, shipments, allocations

    async def list_warehouses(self) -> list[Any]:
        return _as_list(await self.client.get("/warehouses"))

    async def get_warehouse(self, warehouse_id: int | str) -> Any:
        warehouse_id = self.require_id(warehouse_id, "warehouse_id")
        return await self.client.get(f"/warehouses/{warehouse_id}")

    async def list_shipments(
        self,
        order_id: int | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> list[Any]:
        params = {
            "order_id": order_id,
            "page": page,
            "page_size": min(page_size, 100) if page_size else None,
        }
        return _as_list(await self.client.get("/shipments", params))

    async def create_shipment(self, request: CreateVeeqoShipmentRequest | dict) -> Any:
        shipment = self.validate(CreateVeeqoShipmentRequest, request)
        try:
            return await self.client.post("/shipments", shipment.payload())
        finally:
            # Shipping changes the order status
            await self.client.clear_cache("/orders")

    async def list_allocations(
        self, order_id: int | None = None, warehouse_id: int | None = None
    ) -> list[Any]:
        params = {"order_id": order_id, "warehouse_id": warehouse_id}
        return _as_list(await self.client.get("/allocations", params))

    # Account

    async def get_current_user(self) -> Any:
        return await self.client.get("/current_user")

    async def list_stores(self) -> list[Any]:
        return _as_list(await self.client.get("/stores"))

    async def list_channels(self) -> list[Any]:
        return _as_list(await self.client.get("/channels"))
