# boutique_hub/db_models_ext.py
"""
SQLAlchemy ORM Models for Boutique Hub - Part 2.

Collaborator tables touched by the item lifecycle: clients and their
wishlists, shipments aggregated at stock promotion, sales reports and the
checkout ordinal sequence.
"""
from __future__ import annotations
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
import enum

from sqlalchemy import (
    String, Integer, BigInteger, Text, Date, DateTime,
    Numeric, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boutique_hub.database import Base
from boutique_hub.db_models import (
    TimestampMixin, BigIntPK, JSONType, _enum,
    Brand, Store,
)
from boutique_hub.utils import utcnow


class WishlistStatus(str, enum.Enum):
    active = "Active"
    recent_purchase = "Recent purchase"
    watch_sold = "Watch sold"
    cancelled = "Cancelled"


# ============================================================================
# 8. CLIENTS
# ============================================================================

class Client(TimestampMixin, Base):
    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))


# ============================================================================
# 9. WISHLISTS
# ============================================================================

class Wishlist(TimestampMixin, Base):
    __tablename__ = "wishlists"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    client_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    rmc: Mapped[str] = mapped_column(String(100), nullable=False)
    collection: Mapped[Optional[str]] = mapped_column(String(100))
    store_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("stores.id", ondelete="SET NULL"))
    status: Mapped[WishlistStatus] = mapped_column(
        _enum(WishlistStatus, "wishlist_status"), default=WishlistStatus.active, nullable=False
    )
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("idx_wishlists_client", "client_id", "status"),
        Index("idx_wishlists_rmc_store", "rmc", "store_id"),
    )


# ============================================================================
# 10. SHIPMENTS (aggregated per supplier invoice)
# ============================================================================

class Shipment(TimestampMixin, Base):
    __tablename__ = "shipments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    store_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("stores.id", ondelete="SET NULL"))
    sold_to_party: Mapped[Optional[str]] = mapped_column(String(255))
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    shipment_date: Mapped[Optional[date]] = mapped_column(Date)
    payment_deadline: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


# ============================================================================
# 11. REPORTS (sales)
# ============================================================================

class Report(TimestampMixin, Base):
    __tablename__ = "reports"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    store_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False)
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(50))
    serial_number: Mapped[str] = mapped_column(String(100), nullable=False)
    product_model_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("product_models.id", ondelete="SET NULL")
    )
    brand: Mapped[Brand] = mapped_column(_enum(Brand, "brand"), nullable=False)
    rmc: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    price_local: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    client_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("clients.id", ondelete="SET NULL"))
    sold_by: Mapped[str] = mapped_column(String(100), nullable=False)
    sold_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text)
    item_snapshot: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)

    store: Mapped["Store"] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint("store_id", "ordinal", name="uq_reports_store_ordinal"),
        Index("idx_reports_invoice", "invoice_number"),
    )


# ============================================================================
# 12. CHECKOUTS (point-of-sale ordinal sequence)
# ============================================================================

class Checkout(Base):
    __tablename__ = "checkouts"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    store_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("stores.id", ondelete="RESTRICT"), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("store_id", "year", "ordinal", name="uq_checkouts_sequence"),
    )
