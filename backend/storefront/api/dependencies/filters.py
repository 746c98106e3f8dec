"""Parse and validate product-listing query parameters."""

from __future__ import annotations

from fastapi import HTTPException, Query, status

from storefront.services.product_search import ProductFilter

# Postgres INTEGER upper bound; larger ids can never match a row.
MAX_ID = 2**31 - 1

TRUE_VALUES = {"true", "1"}
FALSE_VALUES = {"false", "0", ""}


def parse_id_list(raw: str | None, name: str) -> frozenset[int]:
    """Turn ``"1,2, 3"`` into ``{1, 2, 3}``; reject anything non-numeric."""
    if raw is None:
        return frozenset()
    ids: set[int] = set()
    for piece in raw.split(","):
        piece = piece.strip()
        if not piece:
            continue
        if not (piece.isascii() and piece.isdigit()) or not 0 < int(piece) <= MAX_ID:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid {name} id '{piece}': expected a positive integer",
            )
        ids.add(int(piece))
    return frozenset(ids)


def parse_flag(raw: str | None, name: str) -> bool:
    """Boolean toggles travel as the strings ``"true"``/``"false"``."""
    if raw is None:
        return False
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid value for {name}: expected 'true' or 'false'",
    )


def product_filter_params(
    search: str | None = Query(
        None, description="Case-insensitive match on description or SKU"
    ),
    categories: str | None = Query(None, description="Comma-separated category ids"),
    subcategories: str | None = Query(
        None, description="Comma-separated subcategory ids"
    ),
    brands: str | None = Query(None, description="Comma-separated brand ids"),
    pmp: str | None = Query(None, description="'true' to show PMP products only"),
    promotion: str | None = Query(
        None, description="'true' to show products with an active promo price"
    ),
    clearance: str | None = Query(
        None, description="'true' to show clearance (/R) products"
    ),
) -> ProductFilter:
    """FastAPI dependency producing a validated ``ProductFilter``."""
    return ProductFilter(
        search=search.strip() if search and search.strip() else None,
        categories=parse_id_list(categories, "category"),
        subcategories=parse_id_list(subcategories, "subcategory"),
        brands=parse_id_list(brands, "brand"),
        pmp=parse_flag(pmp, "pmp"),
        promotion=parse_flag(promotion, "promotion"),
        clearance=parse_flag(clearance, "clearance"),
    )


def parse_positive_int(raw: str | None, name: str, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    value = raw.strip()
    if not (value.isascii() and value.isdigit()) or int(value) < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name} '{value}': expected an integer >= 1",
        )
    return int(value)
