"""Cart payloads."""

from pydantic import BaseModel, Field


class CartItem(BaseModel):
    product_id: int = Field(..., ge=1)
    tier: int = Field(..., ge=1, le=3)
    quantity: int = Field(..., ge=1)


class CartQuantityUpdate(BaseModel):
    quantity: int = Field(..., description="Zero or less removes the line")


class CartRead(BaseModel):
    customer_id: int
    items: list[CartItem]
