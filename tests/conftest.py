"""Shared fixtures: a fresh SQLite database per test, seeded with the store directory."""

import io
import os
import tempfile
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

# settings are read at import time
_DATA_ROOT = Path(tempfile.mkdtemp(prefix="boutique-hub-tests-"))
os.environ.setdefault("INVENTORY_DATA_ROOT", str(_DATA_ROOT))
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DATA_ROOT / 'default.db'}")

import pandas as pd
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from boutique_hub import db_models_ext  # noqa: F401  registers collaborator tables
from boutique_hub.adapters.brand_schemas import ROLEX
from boutique_hub.database import Base, seed_stores
from boutique_hub.db_models import Boutique, Brand, Category, Item, ItemStatus, SoonInStock
from boutique_hub.db_models_ext import Client, Wishlist, WishlistStatus
from boutique_hub.services import ProductModelStore
from boutique_hub.settings import settings

ROLEX_HEADERS = list(ROLEX.headers)


def rolex_row(
    rmc="M116769TBRJ-0002",
    collection="GMT-Master II",
    sale_reference="116769TBR",
    material="Meteorite, Oyster",
    dial=None,
    bracelet=None,
    diameter=40,
    case="White gold",
    bracelet_type="Oyster",
    materials="White gold/Diamonds",
    belgrade=1000,
    budva=1100,
    porto=1100,
):
    return [
        rmc, collection, sale_reference, material, dial, bracelet, diameter,
        case, bracelet_type, materials, belgrade, budva, porto,
    ]


def xlsx(headers, rows) -> bytes:
    buf = io.BytesIO()
    pd.DataFrame(rows, columns=headers).to_excel(buf, index=False)
    return buf.getvalue()


def sheet(headers, rows):
    """Raw rows as read_sheet returns them (header row first)."""
    return [list(headers)] + [list(r) for r in rows]


class Factory:
    """Builds models, items and collaborators straight through the stores."""

    def __init__(self, db):
        self.db = db
        self.products = ProductModelStore(db)

    async def model(self, rmc, brand=Brand.rolex, category=Category.watch, prices=None, **info):
        stores = await self.products.list_stores()
        if prices is None:
            prices = {s.name: Decimal("1000") for s in stores}
        info.setdefault("collection", "Submariner")
        return await self.products.create_model(brand, category, rmc, info, prices, stores)

    async def item(self, model, store_name, number, status=ItemStatus.stock, stock_date=None, **fields):
        item = Item(
            number=number,
            status=status,
            location=fields.pop("location", "Safe"),
            stock_date=stock_date or datetime(2024, 1, 1),
            warranty_confirmed=False,
            modified=False,
            extra={},
            **fields,
        )
        return await self.products.add_item_to_boutique(model, store_name, item)

    async def client(self, name="Ana Petrovic"):
        client = Client(name=name)
        self.db.add(client)
        await self.db.flush()
        return client

    async def wishlist(self, client, rmc, collection=None, store=None, status=WishlistStatus.active):
        w = Wishlist(
            client_id=client.id, rmc=rmc, collection=collection,
            store_id=store.id if store is not None else None, status=status,
        )
        self.db.add(w)
        await self.db.flush()
        return w

    async def soon(self, model, store_name, number, **fields):
        store = await self.products.get_store(store_name)
        values = dict(
            status=ItemStatus.new_stock,
            location="Safe",
            sold_to_party="Boutique Belgrade d.o.o.",
            invoice_number="INV-1",
            invoice_date=date(2024, 3, 1),
            shipment_date=date(2024, 3, 5),
            ex_geneva_price=Decimal("8000"),
            warranty_confirmed=False,
            extra={},
        )
        values.update(fields)
        record = SoonInStock(product_model=model, store=store, number=number, **values)
        self.db.add(record)
        await self.db.flush()
        return record


@pytest_asyncio.fixture
async def db(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        await seed_stores(session, settings.DEFAULT_STORES)
        yield session
    await engine.dispose()


@pytest.fixture
def make(db):
    return Factory(db)


async def assert_inventory_consistent(db):
    """quantity == stored item count for every boutique; each serial at most once."""
    counts = dict((await db.execute(
        select(Item.boutique_id, func.count(Item.id)).group_by(Item.boutique_id)
    )).all())
    for b in (await db.execute(select(Boutique))).scalars():
        assert b.quantity == counts.get(b.id, 0) == len(b.items), b.store_name
    dupes = (await db.execute(
        select(Item.number).group_by(Item.number).having(func.count(Item.id) > 1)
    )).scalars().all()
    assert dupes == []


@pytest.fixture
def client(tmp_path, monkeypatch):
    from fastapi.testclient import TestClient

    from boutique_hub import database
    from boutique_hub.main import app

    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setattr(settings, "INVENTORY_DATA_ROOT", tmp_path / "data")
    monkeypatch.setattr(database, "_engine", None)
    monkeypatch.setattr(database, "_async_session_factory", None)
    with TestClient(app) as c:
        yield c
