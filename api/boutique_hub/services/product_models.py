# boutique_hub/services/product_models.py
"""
Product model store.

Owns product models, their per-store boutique entries and the serialized
items inside them. Item mutations go through attach/detach helpers so the
boutique ``quantity`` is always recomputed from the item collection in the
same flush that changes it.
"""
from __future__ import annotations
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.db_models import (
    Brand, Boutique, Item, ProductModel, ProductStatus, Classification, Store,
)
from boutique_hub.errors import NotAcceptable, NotFound
from boutique_hub.utils import (
    currency_rate, local_price, price_history_entry, same_price, utcnow,
)

logger = logging.getLogger(__name__)

# fields compared when deciding whether a re-submitted item is the same value
_ITEM_VALUE_FIELDS = ("status", "location", "comment", "reserved_for", "adjusted_size", "extra")


def apply_price(boutique: Boutique, price: Optional[Decimal], store: Store, when: datetime) -> bool:
    """
    Set the current price of a boutique entry.

    A blank price keeps the stored one. A different price updates price,
    VAT and local price and appends one history entry.
    """
    if price is None or same_price(boutique.price, price):
        return False
    rate = currency_rate(store.currency)
    loc = local_price(price, rate)
    boutique.price = price
    boutique.vat_percent = store.vat_percent
    boutique.price_local = loc
    # reassign: JSON columns only track whole-value changes
    boutique.price_history = [*(boutique.price_history or []), price_history_entry(when, price, store.vat_percent, loc)]
    return True


def new_boutique(store: Store) -> Boutique:
    return Boutique(
        store_id=store.id,
        store_name=store.name,
        price=None,
        vat_percent=store.vat_percent,
        price_local=None,
        price_history=[],
        quantity=0,
        items=[],
    )


class ProductModelStore:
    """Reads and writes product models, boutique entries and items."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Store directory
    # =========================================================================

    async def list_stores(self) -> List[Store]:
        result = await self.db.execute(select(Store).where(Store.is_active == True).order_by(Store.id))
        return list(result.scalars())

    async def get_store(self, name: str) -> Store:
        result = await self.db.execute(select(Store).where(Store.name == name))
        store = result.scalar_one_or_none()
        if store is None:
            raise NotFound(f"Store not found: {name}", store=name)
        return store

    # =========================================================================
    # Lookup
    # =========================================================================

    async def find_by_identity(self, brand: Brand, rmc: str) -> Optional[ProductModel]:
        stmt = select(ProductModel).where(ProductModel.brand == brand, ProductModel.rmc == rmc)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_identity(self, brand: Brand, rmc: str) -> ProductModel:
        model = await self.find_by_identity(brand, rmc)
        if model is None:
            raise NotFound(f"Product model not found: {brand.value} {rmc}", brand=brand.value, rmc=rmc)
        return model

    async def find_by_brand(
        self,
        brand: Optional[Brand] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        status: Optional[ProductStatus] = None,
    ) -> Tuple[int, List[ProductModel]]:
        conditions = []
        if brand is not None:
            conditions.append(ProductModel.brand == brand)
        if status is not None:
            conditions.append(ProductModel.status == status)

        count = (await self.db.execute(select(func.count(ProductModel.id)).where(*conditions))).scalar() or 0

        stmt = select(ProductModel).where(*conditions).order_by(ProductModel.rmc, ProductModel.id).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return count, list(result.scalars())

    async def load_snapshot(self, brand: Brand) -> Dict[str, ProductModel]:
        """Every model of a brand keyed by rmc, loaded once per upload."""
        _, models = await self.find_by_brand(brand)
        return {m.rmc: m for m in models}

    async def find_item(self, serial_number: str) -> Tuple[ProductModel, Boutique, Item]:
        """Model, boutique entry and item for a serial number."""
        result = await self.db.execute(select(Item).where(Item.number == serial_number))
        item = result.scalar_one_or_none()
        if item is None:
            raise NotFound(f"Serial number not found: {serial_number}", serialNumber=serial_number)

        stmt = (
            select(ProductModel)
            .join(Boutique, Boutique.product_model_id == ProductModel.id)
            .where(Boutique.id == item.boutique_id)
        )
        model = (await self.db.execute(stmt)).scalar_one()
        boutique = next(b for b in model.boutiques if b.id == item.boutique_id)
        return model, boutique, item

    async def serial_numbers_in_stock(self, numbers: Iterable[str]) -> Dict[str, Item]:
        numbers = list(numbers)
        if not numbers:
            return {}
        result = await self.db.execute(select(Item).where(Item.number.in_(numbers)))
        return {i.number: i for i in result.scalars()}

    # =========================================================================
    # Catalog writes
    # =========================================================================

    async def upsert_from_catalog_row(self, diff, stores: List[Store], when: Optional[datetime] = None) -> ProductModel:
        """
        Insert the model when its identity is absent, else apply the diff.

        The identity is looked up live (not in the upload snapshot), so two
        rows of one file with the same rmc end up in one model.
        """
        when = when or utcnow()
        model = await self.find_by_identity(diff.brand, diff.rmc)

        if model is None:
            model = ProductModel(
                brand=diff.brand,
                category=diff.category,
                rmc=diff.rmc,
                status=ProductStatus.new,
                basic_info=dict(diff.basic_info),
                boutiques=[],
            )
            for store in stores:
                b = new_boutique(store)
                apply_price(b, diff.target_prices.get(store.name), store, when)
                model.boutiques.append(b)
            self.db.add(model)
            await self.db.flush()
            logger.info("Created product model %s %s", diff.brand.value, diff.rmc)
            return model

        if diff.classification == Classification.unchanged:
            return model
        if diff.classification == Classification.new:
            logger.warning(
                "Row %d: %s %s already written earlier in this upload, merging",
                diff.row_number, diff.brand.value, diff.rmc,
            )

        model.basic_info = {**(model.basic_info or {}), **diff.basic_info}
        for store in stores:
            b = model.boutique_for(store.name)
            if b is None:
                b = new_boutique(store)
                model.boutiques.append(b)
            apply_price(b, diff.target_prices.get(store.name), store, when)
        if diff.classification == Classification.restored:
            model.status = ProductStatus.restored
        elif diff.classification == Classification.changed:
            model.status = ProductStatus.changed
        await self.db.flush()
        logger.info("Updated product model %s %s (%s)", diff.brand.value, diff.rmc, diff.classification.value)
        return model

    async def retire_missing(self, brand: Brand, seen_rmcs: Iterable[str]) -> int:
        """Mark models of a brand that a confirmed catalog no longer lists as deleted."""
        seen = set(seen_rmcs)
        _, models = await self.find_by_brand(brand)
        retired = 0
        for m in models:
            if m.rmc not in seen and m.status != ProductStatus.deleted:
                m.status = ProductStatus.deleted
                retired += 1
        if retired:
            await self.db.flush()
            logger.info("Retired %d %s models", retired, brand.value)
        return retired

    async def create_model(
        self,
        brand: Brand,
        category,
        rmc: str,
        basic_info: Dict[str, Any],
        prices: Dict[str, Optional[Decimal]],
        stores: List[Store],
        when: Optional[datetime] = None,
    ) -> ProductModel:
        when = when or utcnow()
        model = ProductModel(
            brand=brand, category=category, rmc=rmc, status=ProductStatus.new,
            basic_info=dict(basic_info), boutiques=[],
        )
        for store in stores:
            b = new_boutique(store)
            apply_price(b, prices.get(store.name), store, when)
            model.boutiques.append(b)
        self.db.add(model)
        await self.db.flush()
        return model

    # =========================================================================
    # Item mutations
    # =========================================================================

    async def ensure_boutique(self, model: ProductModel, store: Store) -> Boutique:
        b = model.boutique_for(store.name)
        if b is None:
            b = new_boutique(store)
            model.boutiques.append(b)
            await self.db.flush()
        return b

    @staticmethod
    def _attach(boutique: Boutique, item: Item) -> None:
        boutique.items.append(item)
        boutique.quantity = len(boutique.items)

    @staticmethod
    def _detach(boutique: Boutique, item: Item) -> None:
        boutique.items.remove(item)
        boutique.quantity = len(boutique.items)

    async def add_item_to_boutique(self, model: ProductModel, store_name: str, item: Item) -> Item:
        """
        Append an item to a store's boutique entry.

        Re-submitting the exact same item to the same boutique is absorbed;
        the same serial number anywhere else is rejected.
        """
        boutique = model.boutique_for(store_name)
        if boutique is None:
            boutique = await self.ensure_boutique(model, await self.get_store(store_name))

        existing = (await self.serial_numbers_in_stock([item.number])).get(item.number)
        if existing is not None:
            same_value = existing.boutique_id == boutique.id and all(
                getattr(existing, f) == getattr(item, f) for f in _ITEM_VALUE_FIELDS
            )
            if same_value:
                return existing
            raise NotAcceptable(
                f"Serial number {item.number} is already in stock",
                serialNumber=item.number,
            )

        self._attach(boutique, item)
        await self.db.flush()
        return item

    async def remove_item_from_boutique(self, model: ProductModel, store_name: str, serial_number: str) -> Item:
        boutique = model.boutique_for(store_name)
        item = None
        if boutique is not None:
            item = next((i for i in boutique.items if i.number == serial_number), None)
        if item is None:
            raise NotFound(
                f"Serial number {serial_number} not found in {model.rmc} / {store_name}",
                serialNumber=serial_number, rmc=model.rmc, store=store_name,
            )
        self._detach(boutique, item)
        await self.db.delete(item)
        await self.db.flush()
        return item

    async def update_item_fields(self, serial_number: str, patch: Dict[str, Any]) -> Item:
        _, _, item = await self.find_item(serial_number)
        for key, value in patch.items():
            if not hasattr(Item, key) or key in ("id", "number", "boutique_id"):
                raise NotAcceptable(f"Field cannot be updated: {key}", field=key)
            setattr(item, key, value)
        await self.db.flush()
        return item

    async def move_item(self, item: Item, source: Boutique, dest: Boutique) -> Item:
        """Re-parent one item (never a copy); both quantities follow."""
        if item not in source.items:
            raise NotAcceptable(
                f"Serial number {item.number} is no longer in {source.store_name}",
                serialNumber=item.number,
            )
        if source is dest:
            raise NotAcceptable(f"Serial number {item.number} is already there", serialNumber=item.number)
        self._detach(source, item)
        self._attach(dest, item)
        await self.db.flush()
        return item
