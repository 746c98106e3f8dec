"""Validate catalog CSV headers and clean individual rows."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from storefront.db.models.product import BARCODE_EAN, BARCODE_INTERNAL, PLAIN, PMP


class ValidationError(ValueError):
    """Custom exception for CSV validation errors."""

    pass


REQUIRED_PRODUCT_HEADERS = ["item"]
REQUIRED_CATEGORY_HEADERS = [
    "hierarchy1_id",
    "hierarchy1_name",
    "hierarchy2_id",
    "hierarchy2_name",
]

PRICING_TIERS = (1, 2, 3)
EXTRA_INTERNAL_BARCODE_TIER = 4

_WHITESPACE = re.compile(r"\s+")
_DATE_FORMATS = ("%d-%m-%Y", "%Y-%m-%d")


def normalize_header(header: str) -> str:
    """Lower-case, fold non-breaking spaces and collapse runs of whitespace."""
    return _WHITESPACE.sub(" ", header.replace("\u00a0", " ")).strip().lower()


def validate_headers(headers: list[str] | None, required: list[str]) -> None:
    """Ensure CSV contains the required columns before processing."""
    if not headers:
        raise ValidationError(
            f"CSV requires a header row with {','.join(required)} columns"
        )
    normalized = [normalize_header(header) for header in headers]
    missing = [field for field in required if field not in normalized]
    if missing:
        raise ValidationError(f"Missing required column(s): {', '.join(missing)}")


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def clean_str(value: Any) -> str | None:
    return _text(value) or None


def clean_decimal(value: Any) -> Decimal | None:
    text = _text(value).replace(",", "")
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e
    if not number.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return number


def clean_int(value: Any) -> int | None:
    number = clean_decimal(value)
    return int(number) if number is not None else None


def clean_date(value: Any) -> date | None:
    """Accept ``DD-MM-YYYY``, ``DD/MM/YYYY`` or ISO dates."""
    text = _text(value).replace("/", "-")
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {value!r}")


def clean_barcode(value: Any) -> str | None:
    """Digits only; spreadsheet exports turn long EANs into ``5.06E+12``."""
    text = _text(value)
    if not text:
        return None
    if re.search(r"e[+-]?\d", text, re.IGNORECASE):
        try:
            text = str(int(Decimal(text)))
        except InvalidOperation:
            pass
    digits = re.sub(r"[^0-9]", "", text)
    return digits or None


def clean_pmp(value: Any) -> str | None:
    text = _text(value).upper()
    if text in (PMP, PLAIN):
        return text
    return None


def _tier_pricing(row: dict[str, Any], tier: int, promo: dict[str, Any]) -> dict | None:
    sell_price = clean_decimal(row.get(f"sell {tier}"))
    if sell_price is None:
        return None

    promo_price = clean_decimal(row.get(f"promsell for sell {tier}"))
    has_promo = (
        promo_price is not None
        and promo_price > 0
        and promo["start"] is not None
        and promo["end"] is not None
    )
    return {
        "tier": tier,
        "pack_size": clean_str(row.get(f"promsell pack {tier}"))
        or clean_str(row.get(f"pack {tier}")),
        "sell_price": sell_price,
        "promo_price": promo_price if has_promo else None,
        "promo_id": promo["id"] if has_promo else None,
        "promo_start": promo["start"] if has_promo else None,
        "promo_end": promo["end"] if has_promo else None,
    }


def _row_barcodes(row: dict[str, Any]) -> list[dict]:
    barcodes: list[dict] = []
    seen: set[tuple[str, str]] = set()

    def _add(tier: int, raw: Any, barcode_type: str) -> None:
        code = clean_barcode(raw)
        if code and (code, barcode_type) not in seen:
            seen.add((code, barcode_type))
            barcodes.append({"tier": tier, "barcode": code, "barcode_type": barcode_type})

    for tier in PRICING_TIERS:
        _add(tier, row.get(f"ean{tier}"), BARCODE_EAN)
        _add(tier, row.get(f"internal ean {tier}"), BARCODE_INTERNAL)
    _add(
        EXTRA_INTERNAL_BARCODE_TIER,
        row.get(f"internal ean {EXTRA_INTERNAL_BARCODE_TIER}"),
        BARCODE_INTERNAL,
    )
    return barcodes


def normalize_product_row(row: dict[str, Any]) -> dict[str, Any]:
    """Clean one product CSV row (keys already passed through normalize_header).

    Promotion fields of a tier are kept only when the tier has a positive
    promo price and the row has both promo dates; otherwise all are dropped.
    """
    item = _text(row.get("item"))
    if not item:
        raise ValueError("Encountered a row with empty item code")

    try:
        promo_start = clean_date(row.get("promstart"))
        promo_end = clean_date(row.get("promend"))
    except ValueError:
        promo_start = promo_end = None
    promo = {"id": clean_str(row.get("promid")), "start": promo_start, "end": promo_end}

    pricing = [
        tier_row
        for tier in PRICING_TIERS
        if (tier_row := _tier_pricing(row, tier, promo)) is not None
    ]

    return {
        "item": item,
        "vat": clean_str(row.get("vat")),
        "brand": clean_str(row.get("brand")),
        "hierarchy1": clean_int(row.get("hierarchy1")),
        "hierarchy2": clean_int(row.get("hierarchy2")),
        "description": clean_str(row.get("description")),
        "pack_description": clean_str(row.get("pack_description")),
        "qty_in_stock": clean_int(row.get("qty_in_stock")),
        "cases_in_stock": clean_int(row.get("cases_in_stock")),
        "max_order": clean_int(row.get("max. order")),
        "rrp": clean_decimal(row.get("rrp")),
        "por": clean_decimal(row.get("por %")),
        "pmp_plain": clean_pmp(row.get("pmp/plain")),
        "type": clean_str(row.get("type")),
        "pricing": pricing,
        "barcodes": _row_barcodes(row),
    }


def normalize_category_row(row: dict[str, Any]) -> dict[str, Any]:
    """Split a category CSV row into its category and optional subcategory."""
    category_id = clean_int(row.get("hierarchy1_id"))
    if category_id is None:
        raise ValueError("Category row is missing hierarchy1_id")
    return {
        "category_id": category_id,
        "category_name": _text(row.get("hierarchy1_name")) or str(category_id),
        "subcategory_id": clean_int(row.get("hierarchy2_id")),
        "subcategory_name": _text(row.get("hierarchy2_name")),
    }
