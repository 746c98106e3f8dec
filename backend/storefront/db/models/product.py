"""SQLAlchemy models for catalog products and their per-tier detail rows."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import DateTime

from storefront.db.base import Base

PMP = "PMP"
PLAIN = "PLAIN"
CLEARANCE_SUFFIX = "/R"

BARCODE_EAN = "EAN"
BARCODE_INTERNAL = "Internal"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    item = Column(String(64), nullable=False, unique=True)
    vat = Column(String(32))
    brand_id = Column(Integer, ForeignKey("brands.id", ondelete="SET NULL"), index=True)
    hierarchy1 = Column(
        Integer, ForeignKey("categories.id", ondelete="SET NULL"), index=True
    )
    hierarchy2 = Column(
        Integer, ForeignKey("subcategories.id", ondelete="SET NULL"), index=True
    )
    description = Column(Text)
    pack_description = Column(String(255))
    qty_in_stock = Column(Integer)
    cases_in_stock = Column(Integer)
    max_order = Column(Integer)
    rrp = Column(Numeric(10, 2))
    por = Column(Numeric(6, 2))
    pmp_plain = Column(String(8))
    type = Column(String(32))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    pricing = relationship(
        "PricingTier",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="PricingTier.tier",
    )
    barcodes = relationship(
        "Barcode",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Barcode.id",
    )


class PricingTier(Base):
    __tablename__ = "product_pricing"

    id = Column(Integer, primary_key=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    tier = Column(Integer, nullable=False)
    pack_size = Column(String(64))
    sell_price = Column(Numeric(10, 2))
    promo_price = Column(Numeric(10, 2))
    promo_id = Column(String(64))
    promo_start = Column(Date)
    promo_end = Column(Date)

    product = relationship("Product", back_populates="pricing")

    __table_args__ = (
        UniqueConstraint("product_id", "tier", name="uq_product_pricing_tier"),
        CheckConstraint("tier BETWEEN 1 AND 3", name="ck_product_pricing_tier"),
        CheckConstraint(
            "(promo_price IS NULL AND promo_start IS NULL AND promo_end IS NULL)"
            " OR (promo_price IS NOT NULL AND promo_start IS NOT NULL"
            " AND promo_end IS NOT NULL)",
            name="ck_product_pricing_promo_window",
        ),
    )


class Barcode(Base):
    __tablename__ = "product_barcodes"

    id = Column(Integer, primary_key=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    tier = Column(Integer)
    barcode = Column(String(64), nullable=False, index=True)
    barcode_type = Column(String(16), nullable=False, default=BARCODE_EAN)

    product = relationship("Product", back_populates="barcodes")
