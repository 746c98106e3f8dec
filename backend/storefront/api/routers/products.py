"""Catalog listing, detail and barcode lookup endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.api.dependencies.db import get_session
from storefront.api.dependencies.filters import (
    MAX_ID,
    parse_positive_int,
    product_filter_params,
)
from storefront.api.schemas.product import ProductRead
from storefront.core.config import Settings, get_settings
from storefront.services.product_search import (
    ProductFilter,
    find_by_barcode,
    get_product_detail,
    search_products,
)

logger = logging.getLogger(__name__)

router = APIRouter()

HAS_MORE_HEADER = "X-Has-More"


@router.get(
    "",
    summary="List products with facet filters and pagination",
    response_model=list[ProductRead],
)
async def list_products(
    response: Response,
    filters: ProductFilter = Depends(product_filter_params),
    page: str | None = Query(None, description="Page number (1-indexed)"),
    limit: str | None = Query(None, description="Items per page"),
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> list[ProductRead]:
    """Return one page of products ordered by SKU, each with pricing and barcodes.

    Facets combine with AND, except promotion and clearance which combine
    with OR. Whether another page exists is reported in ``X-Has-More``.
    """
    page_number = parse_positive_int(page, "page", 1)
    page_size = min(
        parse_positive_int(limit, "limit", settings.products_page_size),
        settings.products_max_page_size,
    )

    try:
        result = search_products(
            db,
            filters,
            page=page_number,
            limit=page_size,
            image_base_url=settings.image_base_url,
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error listing products: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error fetching products.",
        ) from e

    response.headers[HAS_MORE_HEADER] = "true" if result.has_more else "false"
    return result.items


@router.get(
    "/by-barcode/{barcode}",
    summary="Resolve a scanned barcode to its product",
    response_model=ProductRead,
)
async def get_product_by_barcode(
    barcode: str,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> ProductRead:
    try:
        product = find_by_barcode(db, barcode, settings.image_base_url)
    except SQLAlchemyError as e:
        logger.error(f"Database error looking up barcode {barcode}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error fetching product.",
        ) from e

    if product is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    return product


@router.get(
    "/{product_id}",
    summary="Fetch a single product with full pricing and barcode detail",
    response_model=ProductRead,
)
async def get_product(
    product_id: str,
    db: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> ProductRead:
    identifier = parse_positive_int(product_id, "product ID", 0)
    if not identifier or identifier > MAX_ID:
        raise HTTPException(status_code=400, detail="Invalid product ID.")

    try:
        product = get_product_detail(db, identifier, settings.image_base_url)
    except SQLAlchemyError as e:
        logger.error(f"Database error fetching product {identifier}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error fetching product.",
        ) from e

    if product is None:
        raise HTTPException(status_code=404, detail="Product not found.")
    return product
