"""
Veeqo MCP tools for orders, products, inventory, customers and warehouses,
plus webhook intake.
"""

from typing import Any

from mcp.server.fastmcp import FastMCP

from shipping_mcp.providers.veeqo import VeeqoProvider
from shipping_mcp.tools.base import ToolSet, run_tool
from shipping_mcp.utils import log_tool_call
from shipping_mcp.webhooks import handle_webhook


class VeeqoTools(ToolSet):
    TOOLS = (
        ("list_orders", "List orders with optional filters"),
        ("get_order", "Fetch an order by id"),
        ("create_order", "Create an order"),
        ("update_order", "Update an order's status or notes"),
        ("list_products", "List products"),
        ("get_product", "Fetch a product by id"),
        ("create_product", "Create a product with variants"),
        ("update_product", "Update a product's title, description or brand"),
        ("get_inventory", "List stock entries by warehouse and/or sellable"),
        ("update_stock", "Set the stock level of a sellable in a warehouse"),
        ("bulk_update_inventory", "Apply several stock updates, reporting per-item failures"),
        ("bulk_create_products", "Create several products, reporting per-product failures"),
        ("list_customers", "List customers"),
        ("get_customer", "Fetch a customer by id"),
        ("create_customer", "Create a customer"),
        ("list_warehouses", "List warehouses"),
        ("get_warehouse", "Fetch a warehouse by id"),
        ("list_shipments", "List shipments, optionally for one order"),
        ("create_shipment", "Ship an allocation"),
        ("list_allocations", "List allocations by order and/or warehouse"),
        ("get_current_user", "Fetch the user the API key belongs to"),
        ("list_stores", "List stores"),
        ("list_channels", "List sales channels"),
        ("process_webhook", "Verify and apply a Veeqo webhook delivery"),
    )
    RESOURCES = (
        ("veeqo://warehouses", "warehouses_resource", "Veeqo warehouses"),
        ("veeqo://stores", "stores_resource", "Veeqo stores"),
    )

    provider: VeeqoProvider

    def __init__(self, provider: VeeqoProvider, webhook_secret: str = ""):
        super().__init__(provider)
        self.webhook_secret = webhook_secret

    @property
    def server_name(self) -> str:
        return "veeqo-mcp"

    @property
    def instructions(self) -> str:
        return (
            "Order and inventory tools backed by the Veeqo API. Every tool returns "
            "{success, data} or {success: false, error: {kind, code, message}}."
        )

    # Orders

    @log_tool_call
    async def list_orders(
        self,
        status: str | None = None,
        since_id: int | None = None,
        created_at_min: str | None = None,
        updated_at_min: str | None = None,
        page: int | None = None,
        page_size: int | None = None,
        query: str | None = None,
    ) -> dict[str, Any]:
        params = {
            "status": status,
            "since_id": since_id,
            "created_at_min": created_at_min,
            "updated_at_min": updated_at_min,
            "page": page,
            "page_size": page_size,
            "query": query,
        }
        return await run_tool(self.provider.list_orders(params))

    @log_tool_call
    async def get_order(self, order_id: int) -> dict[str, Any]:
        return await run_tool(self.provider.get_order(order_id))

    @log_tool_call
    async def create_order(
        self,
        channel_id: int,
        line_items: list[dict[str, Any]],
        customer_id: int | None = None,
        deliver_to: dict[str, Any] | None = None,
        delivery_method_id: int | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        request = {
            "channel_id": channel_id,
            "customer_id": customer_id,
            "deliver_to": deliver_to,
            "delivery_method_id": delivery_method_id,
            "line_items_attributes": line_items,
            "notes": notes,
        }
        return await run_tool(self.provider.create_order(request))

    @log_tool_call
    async def update_order(
        self,
        order_id: int,
        status: str | None = None,
        notes: str | None = None,
        customer_note: str | None = None,
    ) -> dict[str, Any]:
        updates = {"status": status, "notes": notes, "customer_note": customer_note}
        return await run_tool(self.provider.update_order(order_id, updates))

    # Products

    @log_tool_call
    async def list_products(
        self,
        query: str | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> dict[str, Any]:
        params = {"query": query, "page": page, "page_size": page_size}
        return await run_tool(self.provider.list_products(params))

    @log_tool_call
    async def get_product(self, product_id: int) -> dict[str, Any]:
        return await run_tool(self.provider.get_product(product_id))

    @log_tool_call
    async def create_product(
        self,
        title: str,
        variants: list[dict[str, Any]],
        description: str | None = None,
        brand: str | None = None,
    ) -> dict[str, Any]:
        request = {
            "title": title,
            "description": description,
            "brand": brand,
            "product_variants_attributes": variants,
        }
        return await run_tool(self.provider.create_product(request))

    @log_tool_call
    async def update_product(
        self,
        product_id: int,
        title: str | None = None,
        description: str | None = None,
        brand: str | None = None,
    ) -> dict[str, Any]:
        updates = {"title": title, "description": description, "brand": brand}
        return await run_tool(self.provider.update_product(product_id, updates))

    # Inventory

    @log_tool_call
    async def get_inventory(
        self, warehouse_id: int | None = None, sellable_id: int | None = None
    ) -> dict[str, Any]:
        return await run_tool(self.provider.list_stock_entries(warehouse_id, sellable_id))

    @log_tool_call
    async def update_stock(
        self,
        sellable_id: int,
        warehouse_id: int,
        physical_stock_level: int | None = None,
        infinite: bool | None = None,
    ) -> dict[str, Any]:
        update = {"physical_stock_level": physical_stock_level, "infinite": infinite}
        return await run_tool(self.provider.update_stock(sellable_id, warehouse_id, update))

    @log_tool_call
    async def bulk_update_inventory(self, updates: list[dict[str, Any]]) -> dict[str, Any]:
        return await run_tool(self.provider.bulk_update_inventory(updates))

    @log_tool_call
    async def bulk_create_products(self, products: list[dict[str, Any]]) -> dict[str, Any]:
        return await run_tool(self.provider.bulk_create_products(products))

    # Customers

    @log_tool_call
    async def list_customers(
        self,
        query: str | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> dict[str, Any]:
        params = {"query": query, "page": page, "page_size": page_size}
        return await run_tool(self.provider.list_customers(params))

    @log_tool_call
    async def get_customer(self, customer_id: int) -> dict[str, Any]:
        return await run_tool(self.provider.get_customer(customer_id))

    @log_tool_call
    async def create_customer(
        self,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        phone: str | None = None,
        customer_type: str | None = None,
    ) -> dict[str, Any]:
        request = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
            "customer_type": customer_type,
        }
        return await run_tool(self.provider.create_customer(request))

    # Warehouses, shipments, allocations

    @log_tool_call
    async def list_warehouses(self) -> dict[str, Any]:
        return await run_tool(self.provider.list_warehouses())

    @log_tool_call
    async def get_warehouse(self, warehouse_id: int) -> dict[str, Any]:
        return await run_tool(self.provider.get_warehouse(warehouse_id))

    @log_tool_call
    async def list_shipments(
        self,
        order_id: int | None = None,
        page: int | None = None,
        page_size: int | None = None,
    ) -> dict[str, Any]:
        return await run_tool(self.provider.list_shipments(order_id, page, page_size))

    @log_tool_call
    async def create_shipment(
        self,
        allocation_id: int,
        carrier_id: int,
        tracking_number: str | None = None,
        notify_customer: bool = False,
        order_id: int | None = None,
    ) -> dict[str, Any]:
        request = {
            "allocation_id": allocation_id,
            "carrier_id": carrier_id,
            "tracking_number": tracking_number,
            "notify_customer": notify_customer,
            "order_id": order_id,
        }
        return await run_tool(self.provider.create_shipment(request))

    @log_tool_call
    async def list_allocations(
        self, order_id: int | None = None, warehouse_id: int | None = None
    ) -> dict[str, Any]:
        return await run_tool(self.provider.list_allocations(order_id, warehouse_id))

    # Account

    @log_tool_call
    async def get_current_user(self) -> dict[str, Any]:
        return await run_tool(self.provider.get_current_user())

    @log_tool_call
    async def list_stores(self) -> dict[str, Any]:
        return await run_tool(self.provider.list_stores())

    @log_tool_call
    async def list_channels(self) -> dict[str, Any]:
        return await run_tool(self.provider.list_channels())

    # Webhooks

    @log_tool_call
    async def process_webhook(self, payload: str, signature: str) -> dict[str, Any]:
        return await run_tool(
            handle_webhook(payload, signature, self.webhook_secret, self.provider.client)
        )

    async def warehouses_resource(self) -> str:
        return await self._resource(self.provider.list_warehouses())

    async def stores_resource(self) -> str:
        return await self._resource(self.provider.list_stores())


def build_server(provider: VeeqoProvider, webhook_secret: str = "") -> FastMCP:
    return VeeqoTools(provider, webhook_secret).build_server()
