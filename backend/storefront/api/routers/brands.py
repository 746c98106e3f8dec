"""Brand vocabulary endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.api.dependencies.db import get_session
from storefront.api.schemas.taxonomy import BrandRead
from storefront.db.models.taxonomy import Brand

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", summary="List brands", response_model=list[BrandRead])
async def list_brands(db: Session = Depends(get_session)) -> list[BrandRead]:
    try:
        rows = db.scalars(select(Brand).order_by(Brand.name.asc())).all()
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching brands: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error fetching brands.",
        ) from e
    return [BrandRead.model_validate(row) for row in rows]
