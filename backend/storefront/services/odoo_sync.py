"""Pull the product catalog from Odoo over JSON-RPC and mirror it locally.

Odoo models one sellable pack size per ``product.product`` variant. Variants
sharing a template become one local product whose pricing tiers are the
variants ordered by list price (cheapest first).
"""

from __future__ import annotations

import logging
import math
import re
import time
from collections import defaultdict
from collections.abc import Callable, Iterator
from decimal import Decimal
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.db.models.product import (
    BARCODE_EAN,
    BARCODE_INTERNAL,
    PLAIN,
    PMP,
    Barcode,
    PricingTier,
    Product,
)
from storefront.db.models.taxonomy import Brand, Category, Subcategory
from storefront.services.catalog_import import brand_lookup

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 60
MAX_TIERS = 3

# Local concept -> Odoo technical field name.
FIELD_MAP = {
    "item": "pos_base_code",
    "description": "name",
    "variant_name": "display_name",
    "vat": "tax_string",
    "hierarchy1": "categ_id",
    "hierarchy2": "pos_categ_ids",
    "pack_description": "unit_size",
    "qty_in_stock": "qty_available",
    "pack_ratio": "pack_ratio",
    "rrp": "rrp_price",
    "por": "por_percent",
    "pmp_plain": "is_pmp",
    "brand_id": "brand_id",
    "template_id": "product_tmpl_id",
    "type": "type",
    "sell1": "list_price",
    "ean1": "barcode",
    "internal_ean1": "default_code",
}

BARCODE_FIELDS = (
    ("ean1", BARCODE_EAN),
    ("internal_ean1", BARCODE_INTERNAL),
)

_PACK_LABEL = re.compile(r"\(([^)]+)\)$")


class OdooError(RuntimeError):
    """Raised for transport failures or error payloads from Odoo."""


class OdooClient:
    """Minimal JSON-RPC client for the ``common`` and ``object`` services."""

    def __init__(
        self,
        url: str,
        database: str,
        username: str,
        password: str,
        *,
        retries: int = 3,
        retry_delay: float = 5.0,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = url
        self.database = database
        self.username = username
        self.password = password
        self.retries = retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._http = httpx.Client(timeout=TIMEOUT_SECONDS, transport=transport)
        self.uid: int | None = None

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "OdooClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def call(self, service: str, method: str, args: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": "call",
            "params": {"service": service, "method": method, "args": args},
            "id": 1,
        }
        attempts_left = self.retries
        while True:
            try:
                response = self._http.post(self.url, json=payload)
            except httpx.RequestError as e:
                raise OdooError(f"Request to Odoo failed: {e}") from e

            if 500 <= response.status_code < 600 and attempts_left > 0:
                attempts_left -= 1
                logger.warning(
                    f"Odoo returned {response.status_code}; retrying in "
                    f"{self.retry_delay}s ({attempts_left} left)"
                )
                self._sleep(self.retry_delay)
                continue
            if response.status_code != 200:
                raise OdooError(
                    f"HTTP Status {response.status_code}: {response.text[:200]}"
                )

            try:
                body = response.json()
            except ValueError as e:
                raise OdooError(f"Invalid JSON response: {e}") from e

            error = body.get("error")
            if error:
                data = error.get("data") or {}
                message = data.get("message") or error.get("message") or "Odoo Error"
                raise OdooError(message)
            return body.get("result")

    def authenticate(self) -> int:
        uid = self.call(
            "common", "authenticate", [self.database, self.username, self.password, {}]
        )
        if not uid:
            raise OdooError(
                f"Odoo authentication failed for {self.username} on {self.database}"
            )
        self.uid = uid
        logger.info(f"Authenticated with Odoo as uid {uid}")
        return uid

    def search_read(
        self,
        model: str,
        domain: list,
        fields: list[str],
        *,
        offset: int = 0,
        limit: int = 200,
    ) -> list[dict]:
        if self.uid is None:
            self.authenticate()
        return self.call(
            "object",
            "execute_kw",
            [
                self.database,
                self.uid,
                self.password,
                model,
                "search_read",
                [domain, fields],
                {"offset": offset, "limit": limit},
            ],
        )

    def iter_active_variants(self, page_size: int = 200) -> Iterator[list[dict]]:
        fields = sorted(set(FIELD_MAP.values()))
        offset = 0
        while True:
            logger.info(f"Fetching Odoo products offset {offset}...")
            batch = self.search_read(
                "product.product",
                [["active", "=", True]],
                fields,
                offset=offset,
                limit=page_size,
            )
            if not batch:
                return
            yield batch
            offset += page_size


def clean_odoo_value(value: Any) -> Any:
    """Odoo sends ``False`` for empty fields and ``[id, name]`` for many2one."""
    if value is False or value is None:
        return None
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _field(variant: dict, key: str) -> Any:
    return clean_odoo_value(variant.get(FIELD_MAP[key]))


def _decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def group_variants(variants: list[dict]) -> dict[int, list[dict]]:
    """Group variants by template, each group sorted by ascending list price."""
    groups: dict[int, list[dict]] = defaultdict(list)
    for variant in variants:
        template_id = _field(variant, "template_id")
        if template_id:
            groups[template_id].append(variant)
    for group in groups.values():
        group.sort(key=lambda v: _field(v, "sell1") or 0)
    return dict(groups)


def pack_size_label(variant: dict, tier: int) -> str:
    """``"Coke (6 Pack)"`` -> ``"6 Pack"``; else unit size; else ``"Pack N"``."""
    display_name = _field(variant, "variant_name")
    if isinstance(display_name, str):
        match = _PACK_LABEL.search(display_name.strip())
        if match:
            return match.group(1)
    unit_size = _field(variant, "pack_description")
    if unit_size:
        return str(unit_size)
    return f"Pack {tier}"


def pmp_flag(raw: Any) -> str | None:
    if isinstance(raw, bool):
        return PMP if raw else PLAIN
    value = clean_odoo_value(raw)
    if isinstance(value, str) and value.upper() in (PMP, PLAIN):
        return value.upper()
    return None


def cases_in_stock(qty: Any, ratio: Any) -> int:
    qty = clean_odoo_value(qty) or 0
    ratio = clean_odoo_value(ratio)
    if not ratio or ratio <= 0:
        return 0
    return math.floor(qty / ratio)


def sync_categories(db: Session, variants: list[dict]) -> int:
    """Upsert categories referenced by ``[id, name]`` category fields."""
    names: dict[int, str] = {}
    for variant in variants:
        raw = variant.get(FIELD_MAP["hierarchy1"])
        if isinstance(raw, (list, tuple)) and len(raw) == 2:
            names[raw[0]] = raw[1]
    for category_id, name in names.items():
        category = db.get(Category, category_id)
        if category is None:
            db.add(Category(id=category_id, name=name))
        else:
            category.name = name
    db.flush()
    return len(names)


def sync_brands(db: Session, variants: list[dict]) -> dict[int, int]:
    """Upsert brands by name; returns Odoo brand id -> local brand id."""
    names: dict[int, str] = {}
    for variant in variants:
        raw = variant.get(FIELD_MAP["brand_id"])
        if isinstance(raw, (list, tuple)) and len(raw) == 2:
            names[raw[0]] = raw[1]

    mapping: dict[int, int] = {}
    for odoo_id, name in names.items():
        brand = brand_lookup(db, name)
        if brand is None:
            brand = Brand(name=name)
            db.add(brand)
            db.flush()
        mapping[odoo_id] = brand.id
    return mapping


def product_values(
    variant: dict, brand_map: dict[int, int], subcategory_ids: set[int]
) -> dict[str, Any]:
    qty = _field(variant, "qty_in_stock") or 0
    hierarchy2 = _field(variant, "hierarchy2")
    return {
        "vat": _field(variant, "vat"),
        "brand_id": brand_map.get(_field(variant, "brand_id")),
        "hierarchy1": _field(variant, "hierarchy1"),
        "hierarchy2": hierarchy2 if hierarchy2 in subcategory_ids else None,
        "description": _field(variant, "description"),
        "pack_description": _field(variant, "pack_description"),
        "qty_in_stock": int(qty),
        "cases_in_stock": cases_in_stock(qty, variant.get(FIELD_MAP["pack_ratio"])),
        "rrp": _decimal(_field(variant, "rrp")),
        "por": _decimal(_field(variant, "por")),
        "pmp_plain": pmp_flag(variant.get(FIELD_MAP["pmp_plain"])),
        "type": _field(variant, "type"),
    }


def _variant_barcodes(variant: dict, tier: int) -> list[Barcode]:
    barcodes = []
    for key, barcode_type in BARCODE_FIELDS:
        value = _field(variant, key)
        if value:
            barcodes.append(
                Barcode(tier=tier, barcode=str(value).strip(), barcode_type=barcode_type)
            )
    return barcodes


def sync_products(db: Session, variants: list[dict]) -> dict[str, int]:
    """Mirror grouped variants into products, rebuilding pricing and barcodes."""
    sync_categories(db, variants)
    brand_map = sync_brands(db, variants)
    subcategory_ids = set(db.scalars(select(Subcategory.id)).all())

    stats = {"processed": 0, "inserted": 0, "updated": 0, "skipped": 0}
    for template_id, group in group_variants(variants).items():
        main = group[0]
        sku = _field(main, "item") or _field(main, "internal_ean1")
        if not sku:
            stats["skipped"] += 1
            continue
        sku = str(sku).strip()
        if len(group) > MAX_TIERS:
            logger.warning(
                f"Template {template_id} ({sku}) has {len(group)} variants; "
                f"keeping the {MAX_TIERS} cheapest"
            )

        product = db.scalar(
            select(Product)
            .where(Product.item == sku)
            .options(selectinload(Product.pricing), selectinload(Product.barcodes))
        )
        if product is None:
            product = Product(item=sku)
            db.add(product)
            stats["inserted"] += 1
        else:
            stats["updated"] += 1
        for key, value in product_values(main, brand_map, subcategory_ids).items():
            setattr(product, key, value)

        pricing: list[PricingTier] = []
        barcodes: list[Barcode] = []
        for tier, variant in enumerate(group[:MAX_TIERS], start=1):
            pricing.append(
                PricingTier(
                    tier=tier,
                    pack_size=pack_size_label(variant, tier),
                    sell_price=_decimal(_field(variant, "sell1")) or Decimal("0"),
                )
            )
            barcodes.extend(_variant_barcodes(variant, tier))
        product.pricing = []
        product.barcodes = []
        db.flush()
        product.pricing = pricing
        product.barcodes = barcodes
        stats["processed"] += 1

    db.flush()
    logger.info(
        f"Odoo sync: {stats['processed']} products "
        f"({stats['inserted']} new, {stats['updated']} updated, "
        f"{stats['skipped']} without SKU)"
    )
    return stats


def run_odoo_sync(client: OdooClient, db: Session, page_size: int = 200) -> dict[str, int]:
    """Fetch every active variant, then write the whole catalog (no commit)."""
    client.authenticate()
    variants: list[dict] = []
    for batch in client.iter_active_variants(page_size):
        variants.extend(batch)
    logger.info(f"Fetched {len(variants)} Odoo variants")
    return sync_products(db, variants)
