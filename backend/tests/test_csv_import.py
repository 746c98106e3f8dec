import csv
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from storefront.db.models import Brand, Category, PricingTier, Product, Subcategory
from storefront.services import catalog_import
from storefront.utils.csv_validator import (
    ValidationError,
    clean_barcode,
    clean_date,
    normalize_header,
    normalize_product_row,
    validate_headers,
)

PRODUCT_HEADERS = [
    "Item",
    "Description",
    "Hierarchy1",
    "Hierarchy2",
    "Brand",
    "PMP/Plain",
    "Sell 1",
    "Pack 1",
    "Sell 2",
    "Pack 2",
    "Promsell for sell 1",
    "PromStart",
    "PromEnd",
    "PromID",
    "EAN1",
    "Internal EAN 1",
]


def _write_csv(path, headers, rows):
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(headers)
        writer.writerows(rows)
    return path


def test_normalize_header_folds_case_and_spacing():
    assert normalize_header("  Sell 1 ") == "sell 1"
    assert normalize_header("Max.   Order") == "max. order"


def test_validate_headers_reports_missing_columns():
    with pytest.raises(ValidationError, match="item"):
        validate_headers(["description"], ["item"])


def test_clean_barcode_expands_scientific_notation():
    assert clean_barcode("5.06E+12") == "5060000000000"
    assert clean_barcode(" 50-600 ") == "50600"
    assert clean_barcode("") is None


def test_clean_date_formats():
    assert clean_date("05/03/2024") == date(2024, 3, 5)
    assert clean_date("2024-03-05") == date(2024, 3, 5)
    assert clean_date("") is None
    with pytest.raises(ValueError):
        clean_date("March 5th")


def _row(**overrides):
    row = {
        "item": "A1",
        "sell 1": "1.20",
        "pack 1": "Single",
        "promsell for sell 1": "0.99",
        "promstart": "01-02-2024",
        "promend": "28-02-2024",
        "promid": "SPRING",
    }
    row.update(overrides)
    return row


def test_promo_kept_with_price_and_dates():
    tier = normalize_product_row(_row())["pricing"][0]
    assert tier["promo_price"] == Decimal("0.99")
    assert tier["promo_start"] == date(2024, 2, 1)
    assert tier["promo_id"] == "SPRING"


@pytest.mark.parametrize(
    "overrides",
    [{"promend": ""}, {"promstart": "not a date"}, {"promsell for sell 1": "0"}],
)
def test_incomplete_promo_is_dropped_entirely(overrides):
    tier = normalize_product_row(_row(**overrides))["pricing"][0]
    assert tier["sell_price"] == Decimal("1.20")
    assert (
        tier["promo_price"],
        tier["promo_id"],
        tier["promo_start"],
        tier["promo_end"],
    ) == (None, None, None, None)


def test_empty_item_is_rejected():
    with pytest.raises(ValueError):
        normalize_product_row(_row(item="  "))


def test_barcodes_are_deduplicated_per_type():
    row = _row(**{"ean1": "501", "ean2": "501", "internal ean 1": "501", "internal ean 4": "9"})
    barcodes = normalize_product_row(row)["barcodes"]
    assert [(b["tier"], b["barcode"], b["barcode_type"]) for b in barcodes] == [
        (1, "501", "EAN"),
        (1, "501", "Internal"),
        (4, "9", "Internal"),
    ]


@pytest.fixture
def taxonomy(db_session):
    db_session.add_all(
        [
            Category(id=1, name="Drinks"),
            Subcategory(id=11, category_id=1, name="Juice"),
            Brand(name="Orchard"),
        ]
    )
    db_session.commit()


def test_import_products_file_inserts_then_updates(tmp_path, db_session, taxonomy):
    path = _write_csv(
        tmp_path / "products.csv",
        PRODUCT_HEADERS,
        [
            ["A1", "Apple Juice", "1", "11", "orchard", "pmp", "1.20", "Single", "6.00", "Case", "0.99", "01/02/2024", "28/02/2024", "SPRING", "5.06E+12", "A1-INT"],
            ["", "No SKU", "", "", "", "", "1", "", "", "", "", "", "", "", "", ""],
            ["B2", "Mystery", "99", "999", "Unknown", "", "2.00", "Single", "", "", "", "", "", "", "", ""],
        ],
    )
    progress = []

    totals = catalog_import.import_products_file(
        path, db_session, on_chunk=lambda processed, stats: progress.append(processed)
    )
    db_session.commit()

    assert totals == {"processed": 2, "inserted": 2, "updated": 0}
    assert progress == [2]

    apple = db_session.scalar(select(Product).where(Product.item == "A1"))
    assert apple.hierarchy1 == 1
    assert apple.hierarchy2 == 11
    assert apple.brand_id is not None
    assert apple.pmp_plain == "PMP"
    assert [tier.tier for tier in apple.pricing] == [1, 2]
    assert apple.pricing[0].promo_start == date(2024, 2, 1)
    assert apple.pricing[1].promo_price is None
    assert {(b.barcode, b.barcode_type) for b in apple.barcodes} == {
        ("5060000000000", "EAN"),
        ("1", "Internal"),
    }

    mystery = db_session.scalar(select(Product).where(Product.item == "B2"))
    assert (mystery.hierarchy1, mystery.hierarchy2, mystery.brand_id) == (None, None, None)

    _write_csv(
        path,
        ["Item", "Description", "Sell 1"],
        [["A1", "Apple Juice 1L", "1.30"]],
    )
    totals = catalog_import.import_products_file(path, db_session)
    db_session.commit()
    db_session.expire_all()

    assert totals["updated"] == 1
    apple = db_session.scalar(select(Product).where(Product.item == "A1"))
    assert apple.description == "Apple Juice 1L"
    assert apple.pricing[0].sell_price == Decimal("1.30")
    assert apple.pricing[0].promo_price is None
    assert apple.barcodes == []
    assert db_session.scalar(select(PricingTier).where(PricingTier.tier == 2)) is not None


def test_import_products_file_requires_item_column(tmp_path, db_session):
    path = _write_csv(tmp_path / "bad.csv", ["Description"], [["x"]])
    with pytest.raises(ValueError, match="Invalid CSV headers"):
        catalog_import.import_products_file(path, db_session)


def test_import_categories_file(tmp_path, db_session):
    path = _write_csv(
        tmp_path / "categories.csv",
        ["Hierarchy1_ID", "Hierarchy1_Name", "Hierarchy2_ID", "Hierarchy2_Name"],
        [["1", "Drinks", "11", "Juice"], ["1", "Drinks", "12", "Water"], ["2", "Snacks", "", ""]],
    )
    stats = catalog_import.import_categories_file(path, db_session)
    db_session.commit()

    assert stats["processed"] == 3
    assert db_session.get(Subcategory, 12).category_id == 1
    assert db_session.get(Category, 2).name == "Snacks"

    _write_csv(
        path,
        ["Hierarchy1_ID", "Hierarchy1_Name", "Hierarchy2_ID", "Hierarchy2_Name"],
        [["1", "Beverages", "11", "Juices"]],
    )
    stats = catalog_import.import_categories_file(path, db_session)
    db_session.commit()
    assert stats["updated"] == 2
    assert db_session.get(Category, 1).name == "Beverages"


def test_import_brands_file_skips_known_names(tmp_path, db_session):
    db_session.add(Brand(name="Orchard"))
    db_session.commit()
    path = _write_csv(tmp_path / "brands.csv", ["Brand"], [["ORCHARD"], ["Crunch"], ["crunch"], [""]])

    stats = catalog_import.import_brands_file(path, db_session)
    db_session.commit()

    assert stats["inserted"] == 1
    assert sorted(db_session.scalars(select(Brand.name)).all()) == ["Crunch", "Orchard"]
