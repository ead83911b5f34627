# boutique_hub/db_models.py
"""
SQLAlchemy ORM Models for Boutique Hub - inventory core.

Product models carry their per-store boutique entries, and every boutique
entry carries the serialized items it holds:

    product_models 1--n boutiques 1--n items

The wire shape (``boutiques[].serialNumbers[]``) is produced by
boutique_hub.serializers.
"""
from __future__ import annotations
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List, Type
import enum

from sqlalchemy import (
    String, Integer, BigInteger, Boolean, Text, Date, DateTime,
    Numeric, ForeignKey, Index, UniqueConstraint,
    Enum as SQLEnum, JSON,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from boutique_hub.database import Base
from boutique_hub.utils import utcnow

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum(cls: Type[enum.Enum], name: str) -> SQLEnum:
    """Persist enum values (not member names)."""
    return SQLEnum(cls, name=name, values_callable=lambda e: [m.value for m in e])


# ============================================================================
# ENUMS
# ============================================================================

class Brand(str, enum.Enum):
    rolex = "rolex"
    tudor = "tudor"
    panerai = "panerai"
    swiss_kubik = "swiss_kubik"
    roberto_coin = "roberto_coin"
    messika = "messika"


class Category(str, enum.Enum):
    watch = "watch"
    jewelry = "jewelry"
    accessory = "accessory"


class ProductStatus(str, enum.Enum):
    new = "new"
    changed = "changed"
    restored = "restored"
    previous = "previous"
    deleted = "deleted"


class Classification(str, enum.Enum):
    new = "new"
    changed = "changed"
    restored = "restored"
    unchanged = "unchanged"


class ItemStatus(str, enum.Enum):
    new_stock = "New stock"
    stock = "Stock"
    reserved = "Reserved"
    pre_reserved = "Pre-reserved"
    standby = "Standby"
    consignment = "Consignment"
    display_only = "Display only"
    in_transit = "In transit"
    paid = "Paid"
    wishlist = "Wishlist"
    not_for_sale = "not for sale"
    vintage = "Vintage"
    staff = "Staff"
    declined = "Declined"


RESERVED_STATUSES = (ItemStatus.reserved, ItemStatus.pre_reserved)


class ActivityType(str, enum.Enum):
    status_change = "Status change"
    store_change = "Store change"
    rmc_change = "RMC change"
    part_exchange = "Part exchange"
    stock_import = "Stock import"
    soon_in_stock = "Soon in stock"
    added_to_stock = "Added to stock"
    sold = "Sold"
    wishlist = "Wishlist"
    manual = "Manual"


# ============================================================================
# MIXIN for updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns (naive UTC)."""
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


# ============================================================================
# 1. STORES (directory, read-only for the core)
# ============================================================================

class Store(TimestampMixin, Base):
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)
    vat_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    issues_invoices: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# ============================================================================
# 2. PRODUCT MODELS
# ============================================================================

class ProductModel(TimestampMixin, Base):
    __tablename__ = "product_models"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    brand: Mapped[Brand] = mapped_column(_enum(Brand, "brand"), nullable=False)
    category: Mapped[Category] = mapped_column(_enum(Category, "category"), nullable=False)
    rmc: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[ProductStatus] = mapped_column(
        _enum(ProductStatus, "product_status"), default=ProductStatus.new, nullable=False
    )
    basic_info: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    boutiques: Mapped[List["Boutique"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Boutique.id",
    )

    __table_args__ = (
        UniqueConstraint("brand", "rmc", name="uq_product_models_identity"),
        Index("idx_product_models_brand", "brand"),
    )

    def boutique_for(self, store_name: str) -> Optional["Boutique"]:
        """Boutique entry by store name (never by position)."""
        for b in self.boutiques:
            if b.store_name == store_name:
                return b
        return None


# ============================================================================
# 3. BOUTIQUES (per-store entry of a product model)
# ============================================================================

class Boutique(Base):
    __tablename__ = "boutiques"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_model_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product_models.id", ondelete="CASCADE"), nullable=False
    )
    store_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False)
    store_name: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    vat_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    price_local: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    price_history: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    items: Mapped[List["Item"]] = relationship(
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Item.id",
    )

    __table_args__ = (
        UniqueConstraint("product_model_id", "store_id", name="uq_boutiques_model_store"),
        Index("idx_boutiques_store", "store_id"),
    )


# ============================================================================
# 4. ITEMS (serialized physical units)
# ============================================================================

class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    boutique_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("boutiques.id", ondelete="CASCADE"), nullable=False
    )
    number: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[ItemStatus] = mapped_column(
        _enum(ItemStatus, "item_status"), default=ItemStatus.stock, nullable=False
    )
    previous_status: Mapped[Optional[ItemStatus]] = mapped_column(_enum(ItemStatus, "item_status"))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    reserved_for: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("clients.id", ondelete="SET NULL"))
    reservation_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    adjusted_size: Mapped[Optional[str]] = mapped_column(String(50))
    warranty_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    stock_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    origin: Mapped[Optional[str]] = mapped_column(String(100))
    modified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    modification_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    modified_by: Mapped[Optional[str]] = mapped_column(String(100))
    # shipment / invoice passthrough carried from intake to sale
    extra: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        # one physical unit lives in exactly one boutique entry
        UniqueConstraint("number", name="uq_items_number"),
        Index("idx_items_boutique", "boutique_id"),
    )


# ============================================================================
# 5. SOON IN STOCK (pre-stock records)
# ============================================================================

class SoonInStock(TimestampMixin, Base):
    __tablename__ = "soon_in_stock"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_model_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product_models.id", ondelete="CASCADE"), nullable=False
    )
    store_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False)
    number: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[Optional[ItemStatus]] = mapped_column(_enum(ItemStatus, "item_status"))
    previous_status: Mapped[Optional[ItemStatus]] = mapped_column(_enum(ItemStatus, "item_status"))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    reserved_for: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("clients.id", ondelete="SET NULL"))
    reservation_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    adjusted_size: Mapped[Optional[str]] = mapped_column(String(50))
    warranty_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sold_to_party: Mapped[Optional[str]] = mapped_column(String(255))
    invoice_number: Mapped[Optional[str]] = mapped_column(String(100))
    invoice_date: Mapped[Optional[date]] = mapped_column(Date)
    shipment_date: Mapped[Optional[date]] = mapped_column(Date)
    ex_geneva_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    extra: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    product_model: Mapped["ProductModel"] = relationship(lazy="joined")
    store: Mapped["Store"] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint("number", name="uq_soon_in_stock_number"),
        Index("idx_soon_in_stock_model_store", "product_model_id", "store_id"),
    )


# ============================================================================
# 6. MODIFIED PRODUCTS (review staging, replaced wholesale per upload)
# ============================================================================

class ModifiedProduct(Base):
    __tablename__ = "modified_products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    brand: Mapped[Brand] = mapped_column(_enum(Brand, "brand"), nullable=False)
    category: Mapped[Category] = mapped_column(_enum(Category, "category"), nullable=False)
    rmc: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[Classification] = mapped_column(_enum(Classification, "classification"), nullable=False)
    row_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    basic_info: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    boutiques: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    changes: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_modified_products_status", "status"),
    )


# ============================================================================
# 7. ACTIVITIES (append-only audit trail)
# ============================================================================

class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    user: Mapped[str] = mapped_column(String(100), nullable=False)
    client_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("clients.id", ondelete="SET NULL"))
    comment: Mapped[str] = mapped_column(Text, default="", nullable=False)
    wishlist_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("wishlists.id", ondelete="SET NULL"))
    product_model_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("product_models.id", ondelete="SET NULL")
    )
    serial_number: Mapped[Optional[str]] = mapped_column(String(100))
    report_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("reports.id", ondelete="SET NULL"))
    manually_added: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activities_serial", "serial_number"),
        Index("idx_activities_product", "product_model_id", "serial_number"),
    )
