"""Business logic for catalog CSV ingestion (products, brands, categories).

Functions here only flush; the caller owns the transaction so a whole file
either lands or rolls back together.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from fastapi import UploadFile
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from storefront.db.models.product import Barcode, PricingTier, Product
from storefront.db.models.taxonomy import Brand, Category, Subcategory
from storefront.storage.uploads import save_upload
from storefront.utils.csv_validator import (
    REQUIRED_CATEGORY_HEADERS,
    REQUIRED_PRODUCT_HEADERS,
    ValidationError,
    normalize_category_row,
    normalize_header,
    normalize_product_row,
    validate_headers,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 500

PRODUCT_FIELDS = (
    "vat",
    "hierarchy1",
    "hierarchy2",
    "description",
    "pack_description",
    "qty_in_stock",
    "cases_in_stock",
    "max_order",
    "rrp",
    "por",
    "pmp_plain",
    "type",
)
PRICING_FIELDS = (
    "pack_size",
    "sell_price",
    "promo_price",
    "promo_id",
    "promo_start",
    "promo_end",
)


async def stage_file(upload_file: UploadFile) -> Path:
    """Persist an uploaded CSV to the uploads directory and return its path."""
    try:
        await upload_file.seek(0)
        return save_upload(upload_file.file, upload_file.filename)
    except OSError as e:
        logger.error(f"OS error saving uploaded file: {e}", exc_info=True)
        raise ValueError(f"Failed to save file: {str(e)}") from e


def _open_reader(handle) -> csv.DictReader:
    reader = csv.DictReader(handle)
    if reader.fieldnames:
        reader.fieldnames = [normalize_header(name) for name in reader.fieldnames]
    return reader


def iter_csv_chunks(
    file_path: Path,
    normalizer: Callable[[dict[str, Any]], dict[str, Any]],
    required_headers: list[str],
    chunk_size: int = CHUNK_SIZE,
) -> Iterable[list[dict]]:
    """Yield normalized rows in batches; rows that fail cleaning are skipped."""
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = _open_reader(handle)
            if not reader.fieldnames:
                raise ValueError("CSV file appears to be empty or invalid")
            try:
                validate_headers(reader.fieldnames, required_headers)
            except ValidationError as e:
                raise ValueError(f"Invalid CSV headers: {str(e)}") from e

            batch: list[dict] = []
            row_num = 1
            for row in reader:
                row_num += 1
                try:
                    batch.append(normalizer(row))
                except (ValueError, KeyError) as e:
                    logger.warning(f"Skipping row {row_num}: {e}")
                    continue

                if len(batch) >= chunk_size:
                    yield batch
                    batch = []

            if batch:
                yield batch

    except FileNotFoundError:
        raise ValueError(f"CSV file not found: {file_path}")
    except PermissionError:
        raise ValueError(f"Permission denied reading file: {file_path}")
    except UnicodeDecodeError as e:
        raise ValueError(f"File encoding error: {str(e)}") from e
    except csv.Error as e:
        raise ValueError(f"CSV parsing error: {str(e)}") from e


def count_rows(file_path: Path) -> int:
    """Return the number of data rows in the CSV (excluding the header)."""
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.reader(handle)
            if next(reader, None) is None:
                raise ValueError("CSV file appears to be empty or invalid")
            return sum(1 for row in reader if any(cell.strip() for cell in row))
    except FileNotFoundError:
        raise ValueError(f"CSV file not found: {file_path}")
    except UnicodeDecodeError as e:
        raise ValueError(f"File encoding error: {str(e)}") from e
    except csv.Error as e:
        raise ValueError(f"CSV parsing error: {str(e)}") from e


class CatalogLookups:
    """Known category/subcategory ids and brand names, loaded once per import."""

    def __init__(self, db: Session):
        self.category_ids = set(db.scalars(select(Category.id)).all())
        self.subcategory_ids = set(db.scalars(select(Subcategory.id)).all())
        self.brand_ids = {
            name.lower(): brand_id
            for brand_id, name in db.execute(select(Brand.id, Brand.name)).all()
        }

    def resolve(self, row: dict[str, Any]) -> dict[str, Any]:
        """Drop unknown taxonomy ids and map the brand name to its id."""
        values = {field: row.get(field) for field in PRODUCT_FIELDS}
        if values["hierarchy1"] not in self.category_ids:
            values["hierarchy1"] = None
        if values["hierarchy2"] not in self.subcategory_ids:
            values["hierarchy2"] = None
        brand = row.get("brand")
        values["brand_id"] = self.brand_ids.get(brand.lower()) if brand else None
        return values


def _apply_pricing(product: Product, tiers: list[dict]) -> None:
    existing = {row.tier: row for row in product.pricing}
    for tier_values in tiers:
        row = existing.get(tier_values["tier"])
        if row is None:
            product.pricing.append(
                PricingTier(
                    tier=tier_values["tier"],
                    **{key: tier_values[key] for key in PRICING_FIELDS},
                )
            )
            continue
        for key in PRICING_FIELDS:
            setattr(row, key, tier_values[key])


def _replace_barcodes(product: Product, barcodes: list[dict]) -> None:
    product.barcodes = [Barcode(**values) for values in barcodes]


def upsert_products(
    rows: list[dict], db: Session, lookups: CatalogLookups
) -> dict[str, int]:
    """Insert or update products by ``item``; pricing upserted per tier,
    barcodes rebuilt from the row."""
    if not rows:
        return {"inserted": 0, "updated": 0}

    by_item: dict[str, dict] = {}
    for row in rows:
        by_item[row["item"]] = row

    try:
        existing_products = db.scalars(
            select(Product)
            .where(Product.item.in_(list(by_item.keys())))
            .options(selectinload(Product.pricing), selectinload(Product.barcodes))
        ).all()

        updated = 0
        for product in existing_products:
            payload = by_item.pop(product.item)
            for key, value in lookups.resolve(payload).items():
                setattr(product, key, value)
            _apply_pricing(product, payload["pricing"])
            _replace_barcodes(product, payload["barcodes"])
            updated += 1

        inserted = 0
        for item, payload in by_item.items():
            product = Product(item=item, **lookups.resolve(payload))
            _apply_pricing(product, payload["pricing"])
            _replace_barcodes(product, payload["barcodes"])
            db.add(product)
            inserted += 1

        db.flush()
        return {"inserted": inserted, "updated": updated}

    except SQLAlchemyError as e:
        logger.error(f"Database error in upsert_products: {e}", exc_info=True)
        raise


def import_products_file(
    file_path: Path,
    db: Session,
    on_chunk: Callable[[int, dict[str, int]], None] | None = None,
) -> dict[str, int]:
    """Load a products CSV into the catalog (no commit)."""
    lookups = CatalogLookups(db)
    totals = {"processed": 0, "inserted": 0, "updated": 0}
    for chunk in iter_csv_chunks(file_path, normalize_product_row, REQUIRED_PRODUCT_HEADERS):
        stats = upsert_products(chunk, db, lookups)
        totals["processed"] += len(chunk)
        totals["inserted"] += stats["inserted"]
        totals["updated"] += stats["updated"]
        if on_chunk:
            on_chunk(totals["processed"], totals)
    logger.info(
        f"Product CSV {file_path.name}: {totals['inserted']} inserted, "
        f"{totals['updated']} updated"
    )
    return totals


def read_brand_names(file_path: Path) -> list[str]:
    """Brand files carry one name per line in their first column after a header."""
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.reader(handle)
            next(reader, None)
            return [row[0].strip() for row in reader if row and row[0].strip()]
    except FileNotFoundError:
        raise ValueError(f"CSV file not found: {file_path}")
    except csv.Error as e:
        raise ValueError(f"CSV parsing error: {str(e)}") from e


def import_brands_file(file_path: Path, db: Session) -> dict[str, int]:
    """Insert brands that do not exist yet (name match is case-insensitive)."""
    known = {name.lower() for name in db.scalars(select(Brand.name)).all()}
    inserted = 0
    for name in read_brand_names(file_path):
        if name.lower() in known:
            continue
        db.add(Brand(name=name))
        known.add(name.lower())
        inserted += 1
    db.flush()
    logger.info(f"Brand CSV {file_path.name}: {inserted} inserted")
    return {"processed": inserted, "inserted": inserted, "updated": 0}


def upsert_categories(rows: list[dict], db: Session) -> dict[str, int]:
    """Upsert categories and subcategories keyed by their source ids."""
    categories: dict[int, str] = {}
    subcategories: dict[int, dict] = {}
    for row in rows:
        categories.setdefault(row["category_id"], row["category_name"])
        if row["subcategory_id"] is not None:
            subcategories[row["subcategory_id"]] = row

    inserted = updated = 0
    for category_id, name in categories.items():
        category = db.get(Category, category_id)
        if category is None:
            db.add(Category(id=category_id, name=name))
            inserted += 1
        else:
            category.name = name
            updated += 1
    db.flush()

    for subcategory_id, row in subcategories.items():
        name = row["subcategory_name"] or str(subcategory_id)
        subcategory = db.get(Subcategory, subcategory_id)
        if subcategory is None:
            db.add(
                Subcategory(id=subcategory_id, category_id=row["category_id"], name=name)
            )
            inserted += 1
        else:
            subcategory.name = name
            subcategory.category_id = row["category_id"]
            updated += 1
    db.flush()
    return {"inserted": inserted, "updated": updated}


def import_categories_file(file_path: Path, db: Session) -> dict[str, int]:
    rows: list[dict] = []
    for chunk in iter_csv_chunks(
        file_path, normalize_category_row, REQUIRED_CATEGORY_HEADERS
    ):
        rows.extend(chunk)
    stats = upsert_categories(rows, db)
    logger.info(
        f"Category CSV {file_path.name}: {stats['inserted']} inserted, "
        f"{stats['updated']} updated"
    )
    return {"processed": len(rows), **stats}


def brand_lookup(db: Session, name: str) -> Brand | None:
    return db.scalar(select(Brand).where(func.lower(Brand.name) == name.lower()))
