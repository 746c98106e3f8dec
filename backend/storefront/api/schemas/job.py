"""Catalog import job payloads."""

from datetime import datetime

from pydantic import BaseModel, Field


class JobStatus(BaseModel):
    id: str
    type: str = Field(..., description="Catalog being imported: products, brands, categories or odoo")
    status: str = Field(..., description="pending, running, completed or failed")
    progress: float | None = Field(None, description="Fraction of catalog rows written, 0-1")
    message: str | None = None
    total_rows: int | None = Field(None, description="Data rows in the uploaded CSV")
    processed_rows: int | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    meta: dict | None = Field(
        None, description="Import totals (processed, inserted, updated) or failure details"
    )
