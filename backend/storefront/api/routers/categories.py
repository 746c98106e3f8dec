"""Category and subcategory vocabularies for the filter editor."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.api.dependencies.db import get_session
from storefront.api.schemas.taxonomy import CategoryRead, SubcategoryRead
from storefront.db.models.taxonomy import Category, Subcategory

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", summary="List categories", response_model=list[CategoryRead])
async def list_categories(db: Session = Depends(get_session)) -> list[CategoryRead]:
    try:
        rows = db.scalars(select(Category).order_by(Category.name.asc())).all()
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching categories: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error fetching categories.",
        ) from e
    return [CategoryRead.model_validate(row) for row in rows]


@router.get(
    "/sub",
    summary="List subcategories with their owning category",
    response_model=list[SubcategoryRead],
)
async def list_subcategories(
    db: Session = Depends(get_session),
) -> list[SubcategoryRead]:
    """Each subcategory carries ``category_id`` so clients can build the
    subcategory-to-category lookup used when categories are deselected."""
    try:
        rows = db.scalars(select(Subcategory).order_by(Subcategory.name.asc())).all()
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching subcategories: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error fetching subcategories.",
        ) from e
    return [SubcategoryRead.model_validate(row) for row in rows]
