"""Shared fixtures: in-memory SQLite catalog, settings and fakeredis."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront.db.models  # noqa: F401
from storefront.api.dependencies.carts import get_cart_repository
from storefront.api.dependencies.db import get_session
from storefront.core.config import Settings, get_settings
from storefront.db.base import Base
from storefront.db.models import Barcode, Brand, Category, PricingTier, Product, Subcategory
from storefront.main import app
from storefront.services.cart_repository import CartRepository

IMAGE_BASE = "https://cdn.example.com/images"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        image_base_url=f"{IMAGE_BASE}/",
        uploads_dir=str(tmp_path / "uploads"),
        products_page_size=20,
        products_max_page_size=100,
        cart_ttl_seconds=3600,
    )


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def client(db_session, settings, fake_redis):
    def _session():
        yield db_session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_cart_repository] = lambda: CartRepository(
        fake_redis, settings.cart_ttl_seconds
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def add_product(
    db,
    item: str,
    *,
    description: str | None = None,
    category: int | None = None,
    subcategory: int | None = None,
    brand: int | None = None,
    pmp: str | None = None,
    tiers=(),
    barcodes=(),
) -> Product:
    """Insert a product; ``tiers`` are (sell_price, promo_price) pairs."""
    product = Product(
        item=item,
        description=description,
        hierarchy1=category,
        hierarchy2=subcategory,
        brand_id=brand,
        pmp_plain=pmp,
    )
    for tier, (sell_price, promo_price) in enumerate(tiers, start=1):
        promo = promo_price is not None
        product.pricing.append(
            PricingTier(
                tier=tier,
                pack_size=f"Pack {tier}",
                sell_price=Decimal(str(sell_price)),
                promo_price=Decimal(str(promo_price)) if promo else None,
                promo_id="P1" if promo else None,
                promo_start=date(2024, 1, 1) if promo else None,
                promo_end=date(2024, 12, 31) if promo else None,
            )
        )
    for tier, code in barcodes:
        product.barcodes.append(Barcode(tier=tier, barcode=code, barcode_type="EAN"))
    db.add(product)
    db.flush()
    return product


@pytest.fixture
def catalog(db_session):
    """A small catalog covering every facet.

    A100  category 1/sub 11, brand 1, promo on two tiers
    B200/R  clearance, no pricing rows
    C300/r  clearance (lower-case suffix), plain price
    D400  category 2/sub 21, brand 2, PMP
    E500  category 1/sub 12, brand 2, zero promo price
    """
    db_session.add_all(
        [
            Category(id=1, name="Drinks"),
            Category(id=2, name="Snacks"),
            Subcategory(id=11, category_id=1, name="Juice"),
            Subcategory(id=12, category_id=1, name="Water"),
            Subcategory(id=21, category_id=2, name="Crisps"),
            Brand(id=1, name="Orchard"),
            Brand(id=2, name="Crunch"),
        ]
    )
    db_session.flush()
    products = {
        "A100": add_product(
            db_session,
            "A100",
            description="Apple Juice 1L",
            category=1,
            subcategory=11,
            brand=1,
            pmp="PLAIN",
            tiers=[(1.50, 0.99), (8.00, 6.50)],
            barcodes=[(1, "5000000000001")],
        ),
        "B200/R": add_product(db_session, "B200/R", description="Banana Bread"),
        "C300/r": add_product(
            db_session, "C300/r", description="Cola Can", tiers=[(0.80, None)]
        ),
        "D400": add_product(
            db_session,
            "D400",
            description="Salted Crisps",
            category=2,
            subcategory=21,
            brand=2,
            pmp="PMP",
            tiers=[(0.60, None)],
            barcodes=[(1, "5000000000004"), (1, "5000000000001")],
        ),
        "E500": add_product(
            db_session,
            "E500",
            description="Still Water 50% off",
            category=1,
            subcategory=12,
            brand=2,
            tiers=[(0.40, 0)],
        ),
    }
    db_session.commit()
    return products
