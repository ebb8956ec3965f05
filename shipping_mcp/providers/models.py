"""
Input models for provider operations.

These are validated before any network call; response payloads are
passed through untouched.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class InputModel(BaseModel):
    """Unknown provider fields are passed through."""

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    def payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# EasyPost


class Address(InputModel):
    name: str | None = None
    company: str | None = None
    street1: str = Field(min_length=1)
    street2: str | None = None
    city: str = Field(min_length=1)
    state: str | None = None
    zip: str = Field(min_length=1)
    country: str = Field(default="US", min_length=2, max_length=2)
    phone: str | None = None
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)
    residential: bool | None = None

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value: str) -> str:
        return value.upper()


class Parcel(InputModel):
    length: float | None = Field(default=None, gt=0)
    width: float | None = Field(default=None, gt=0)
    height: float | None = Field(default=None, gt=0)
    weight: float = Field(gt=0)
    predefined_package: str | None = None


class CustomsItem(InputModel):
    description: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    value: float = Field(ge=0)
    weight: float = Field(gt=0)
    hs_tariff_number: str | None = None
    origin_country: str | None = Field(default=None, min_length=2, max_length=2)


class CustomsInfo(InputModel):
    contents_type: Literal[
        "documents", "gift", "merchandise", "returned_goods", "sample", "other"
    ] = "merchandise"
    contents_explanation: str | None = None
    customs_certify: bool = True
    customs_signer: str = Field(min_length=1)
    non_delivery_option: Literal["return", "abandon"] = "return"
    restriction_type: str = "none"
    restriction_comments: str | None = None
    eel_pfc: str | None = None
    customs_items: list[CustomsItem] = Field(min_length=1)


class CreateShipmentRequest(InputModel):
    to_address: Address
    from_address: Address
    parcel: Parcel
    return_address: Address | None = None
    customs_info: CustomsInfo | None = None
    options: dict[str, Any] | None = None
    reference: str | None = None


class TrackRequest(InputModel):
    tracking_code: str = Field(min_length=1)
    carrier: str | None = None


class SmartrateRequest(InputModel):
    from_zip: str = Field(min_length=3)
    to_zip: str = Field(min_length=3)
    planned_ship_date: str | None = None
    desired_delivery_date: str | None = None
    carriers: list[str] | None = None


# Veeqo


class LineItem(InputModel):
    sellable_id: int = Field(gt=0)
    quantity: int = Field(gt=0)
    price_per_unit: float | None = Field(default=None, ge=0)
    tax_rate: float | None = Field(default=None, ge=0)


class DeliverTo(InputModel):
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    address1: str = Field(min_length=1)
    address2: str | None = None
    city: str = Field(min_length=1)
    state: str | None = None
    zip_code: str = Field(min_length=1)
    country: str = Field(min_length=2, max_length=2)
    phone: str | None = None
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN)


class CreateOrderRequest(InputModel):
    channel_id: int = Field(gt=0)
    customer_id: int | None = Field(default=None, gt=0)
    deliver_to: DeliverTo | None = None
    deliver_to_id: int | None = Field(default=None, gt=0)
    delivery_method_id: int | None = Field(default=None, gt=0)
    line_items_attributes: list[LineItem] = Field(min_length=1)
    notes: str | None = None
    total_discounts: float | None = Field(default=None, ge=0)

    def payload(self) -> dict[str, Any]:
        return {"order": super().payload()}


class UpdateOrderRequest(InputModel):
    status: (
        Literal[
            "awaiting_payment",
            "awaiting_stock",
            "awaiting_fulfillment",
            "on_hold",
            "shipped",
            "cancelled",
            "refunded",
            "completed",
        ]
        | None
    ) = None
    notes: str | None = None
    customer_note: str | None = None

    def payload(self) -> dict[str, Any]:
        return {"order": super().payload()}


class OrderSearchParams(InputModel):
    status: str | None = None
    since_id: int | None = None
    created_at_min: str | None = None
    updated_at_min: str | None = None
    page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1, le=100)
    query: str | None = None


class ProductVariant(InputModel):
    title: str = Field(min_length=1)
    sku_code: str = Field(min_length=1)
    price: float = Field(ge=0)
    cost_price: float | None = Field(default=None, ge=0)
    weight_grams: float | None = Field(default=None, ge=0)
    upc_code: str | None = None


class CreateProductRequest(InputModel):
    title: str = Field(min_length=1)
    description: str | None = None
    brand: str | None = None
    product_variants_attributes: list[ProductVariant] = Field(min_length=1)

    def payload(self) -> dict[str, Any]:
        return {"product": super().payload()}


class UpdateProductRequest(InputModel):
    title: str | None = None
    description: str | None = None
    brand: str | None = None

    def payload(self) -> dict[str, Any]:
        return {"product": super().payload()}


class ProductSearchParams(InputModel):
    query: str | None = None
    since_id: int | None = None
    page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1, le=100)


class StockUpdate(InputModel):
    physical_stock_level: int | None = Field(default=None, ge=0)
    infinite: bool | None = None

    def payload(self) -> dict[str, Any]:
        return {"stock_entry": super().payload()}


class CreateCustomerRequest(InputModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    mobile: str | None = None
    customer_type: Literal["retail", "business"] | None = None

    def payload(self) -> dict[str, Any]:
        return {"customer": super().payload()}


class CustomerSearchParams(InputModel):
    query: str | None = None
    page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1, le=100)


class CreateVeeqoShipmentRequest(InputModel):
    allocation_id: int = Field(gt=0)
    carrier_id: int = Field(gt=0)
    tracking_number: str | None = None
    notify_customer: bool = False
    order_id: int | None = Field(default=None, gt=0)

    def payload(self) -> dict[str, Any]:
        data = super().payload()
        order_id = data.pop("order_id", None)
        return _drop_none({"shipment": data, "order_id": order_id})
