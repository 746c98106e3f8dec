"""Facet vocabulary payloads."""

from pydantic import BaseModel


class CategoryRead(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class SubcategoryRead(BaseModel):
    id: int
    category_id: int
    name: str

    model_config = {"from_attributes": True}


class BrandRead(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}
