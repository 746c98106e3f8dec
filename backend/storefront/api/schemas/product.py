"""Pydantic models describing catalog product payloads."""

from datetime import date

from pydantic import BaseModel, Field


class PricingTierRead(BaseModel):
    tier: int = Field(..., description="Pack-size variant, 1-3")
    pack_size: str | None = None
    sell_price: float | None = None
    promo_price: float | None = None
    promo_id: str | None = None
    promo_start: date | None = None
    promo_end: date | None = None

    model_config = {"from_attributes": True}


class BarcodeRead(BaseModel):
    id: int
    product_id: int
    tier: int | None = None
    barcode: str
    barcode_type: str = Field(..., description="EAN or Internal")

    model_config = {"from_attributes": True}


class ProductRead(BaseModel):
    id: int
    item: str = Field(..., description="Unique SKU")
    vat: str | None = None
    brand_id: int | None = None
    hierarchy1: int | None = Field(None, description="Category id")
    hierarchy2: int | None = Field(None, description="Subcategory id")
    description: str | None = None
    pack_description: str | None = None
    qty_in_stock: int | None = None
    cases_in_stock: int | None = None
    max_order: int | None = None
    rrp: float | None = None
    por: float | None = None
    pmp_plain: str | None = None
    type: str | None = None
    image_url: str | None = None
    pricing: list[PricingTierRead] = Field(default_factory=list)
    barcodes: list[BarcodeRead] = Field(default_factory=list)

    model_config = {"extra": "ignore"}
