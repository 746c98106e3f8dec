"""Faceted product search: SQL construction and per-page detail assembly.

The listing is built as a single statement over ``products``. Facets combine
with AND, except the two "deal" facets (promotion and clearance) which
combine with OR when both are requested. Pricing tiers and barcodes for the
returned page are then loaded with one bulk query each and joined in memory.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import and_, inspect, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement, Select

from storefront.api.schemas.product import BarcodeRead, PricingTierRead, ProductRead
from storefront.db.models.product import (
    CLEARANCE_SUFFIX,
    PMP,
    Barcode,
    PricingTier,
    Product,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductFilter:
    """Validated facet selection for one listing request."""

    search: str | None = None
    categories: frozenset[int] = field(default_factory=frozenset)
    subcategories: frozenset[int] = field(default_factory=frozenset)
    brands: frozenset[int] = field(default_factory=frozenset)
    pmp: bool = False
    promotion: bool = False
    clearance: bool = False


@dataclass
class ProductPage:
    items: list[ProductRead]
    page: int
    limit: int
    has_more: bool


def build_image_url(item: str, base_url: str | None) -> str | None:
    """Deterministic CDN location for a SKU's image."""
    if not base_url or not item:
        return None
    return f"{base_url}/{item}.webp"


def promotion_predicate() -> ColumnElement[bool]:
    return and_(PricingTier.promo_price.is_not(None), PricingTier.promo_price > 0)


def clearance_predicate() -> ColumnElement[bool]:
    return Product.item.iendswith(CLEARANCE_SUFFIX, autoescape=True)


def combine_deal_predicates(
    promotion: ColumnElement[bool] | None,
    clearance: ColumnElement[bool] | None,
) -> ColumnElement[bool] | None:
    """Merge the promotion and clearance conditions.

    Unlike every other facet these two are alternatives: a product shown
    under "promotion + clearance" qualifies through either one.
    """
    clauses = [clause for clause in (promotion, clearance) if clause is not None]
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return or_(*clauses)


def build_product_query(filters: ProductFilter) -> Select:
    """Compile the facet selection into an unpaginated, ordered SELECT."""
    query = select(Product)
    conditions: list[ColumnElement[bool]] = []

    if filters.search:
        term = filters.search.strip()
        if term:
            conditions.append(
                or_(
                    Product.description.icontains(term, autoescape=True),
                    Product.item.icontains(term, autoescape=True),
                )
            )

    if filters.categories:
        conditions.append(Product.hierarchy1.in_(sorted(filters.categories)))
    if filters.subcategories:
        conditions.append(Product.hierarchy2.in_(sorted(filters.subcategories)))
    if filters.brands:
        conditions.append(Product.brand_id.in_(sorted(filters.brands)))
    if filters.pmp:
        conditions.append(Product.pmp_plain == PMP)

    promotion = None
    if filters.promotion:
        # Outer join so that clearance-only matches survive when the two
        # deal facets are OR-ed; one row per product is restored by GROUP BY.
        query = query.outerjoin(PricingTier, PricingTier.product_id == Product.id)
        query = query.group_by(Product.id)
        promotion = promotion_predicate()
    clearance = clearance_predicate() if filters.clearance else None

    deals = combine_deal_predicates(promotion, clearance)
    if deals is not None:
        conditions.append(deals)

    if conditions:
        query = query.where(and_(*conditions))

    return query.order_by(Product.item.asc(), Product.id.asc())


def _column_values(obj) -> dict:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


def attach_details(
    db: Session, products: Sequence[Product], image_base_url: str | None
) -> list[ProductRead]:
    """Load pricing and barcodes for ``products`` in two bulk queries."""
    if not products:
        return []

    ids = [product.id for product in products]
    pricing_rows = db.scalars(
        select(PricingTier)
        .where(PricingTier.product_id.in_(ids))
        .order_by(PricingTier.product_id, PricingTier.tier)
    ).all()
    barcode_rows = db.scalars(
        select(Barcode)
        .where(Barcode.product_id.in_(ids))
        .order_by(Barcode.product_id, Barcode.id)
    ).all()

    pricing_by_product: dict[int, list[PricingTierRead]] = defaultdict(list)
    for row in pricing_rows:
        pricing_by_product[row.product_id].append(PricingTierRead.model_validate(row))
    barcodes_by_product: dict[int, list[BarcodeRead]] = defaultdict(list)
    for row in barcode_rows:
        barcodes_by_product[row.product_id].append(BarcodeRead.model_validate(row))

    return [
        ProductRead(
            **_column_values(product),
            image_url=build_image_url(product.item, image_base_url),
            pricing=pricing_by_product.get(product.id, []),
            barcodes=barcodes_by_product.get(product.id, []),
        )
        for product in products
    ]


def search_products(
    db: Session,
    filters: ProductFilter,
    *,
    page: int,
    limit: int,
    image_base_url: str | None = None,
) -> ProductPage:
    """Return one page of matching products with pricing and barcodes attached.

    One extra row is requested past ``limit`` so that ``has_more`` is exact
    rather than inferred from a full page.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if limit < 1:
        raise ValueError("limit must be >= 1")

    offset = (page - 1) * limit
    query = build_product_query(filters).offset(offset).limit(limit + 1)
    rows = db.scalars(query).all()

    has_more = len(rows) > limit
    products = list(rows[:limit])
    logger.debug(
        f"Product search page={page} limit={limit} returned={len(products)} "
        f"has_more={has_more}"
    )
    return ProductPage(
        items=attach_details(db, products, image_base_url),
        page=page,
        limit=limit,
        has_more=has_more,
    )


def get_product_detail(
    db: Session, product_id: int, image_base_url: str | None = None
) -> ProductRead | None:
    product = db.get(Product, product_id)
    if product is None:
        return None
    return attach_details(db, [product], image_base_url)[0]


def find_by_barcode(
    db: Session, barcode: str, image_base_url: str | None = None
) -> ProductRead | None:
    """Resolve a scanned code to its product.

    Barcodes are not unique across products; the lowest product id wins.
    """
    code = barcode.strip()
    if not code:
        return None
    product_id = db.scalar(
        select(Barcode.product_id)
        .where(Barcode.barcode == code)
        .order_by(Barcode.product_id)
        .limit(1)
    )
    if product_id is None:
        return None
    return get_product_detail(db, product_id, image_base_url)
