# boutique_hub/services/lifecycle.py
"""
Item Lifecycle Engine - state machine for serialized items.

Handles:
- Status / reservation edits with one narrated activity per call
- Store transfer and model (RMC) reassignment
- Part exchange between two items of the same family
- Stock intake: direct stock sheets, shipment sheets, promotion to stock
- Sale (delegated to SalesService)

Every workflow runs in the caller's session; the request commits or rolls
back as a whole.
"""
from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.adapters.row_mapper import SoonInStockRow, StockRow
from boutique_hub.db_models import (
    ActivityType, Boutique, Item, ItemStatus, ProductModel, ProductStatus,
    RESERVED_STATUSES, SoonInStock, Store,
)
from boutique_hub.db_models_ext import Client, Shipment, Wishlist, WishlistStatus
from boutique_hub.errors import (
    MissingExGenevaPrice, MissingInvoiceDate, MissingInvoiceNumber,
    MissingParameters, MissingShipmentDate, MissingStatus,
    NotAcceptable, NotFound,
)
from boutique_hub.services.activity import ActivityLog, join_sentences, narrate_change
from boutique_hub.services.product_models import ProductModelStore
from boutique_hub.services.sales import SalesService
from boutique_hub.services.soon_in_stock import SoonInStockStore
from boutique_hub.settings import settings
from boutique_hub.utils import money, utcnow

logger = logging.getLogger(__name__)

# patch keys accepted by edit_item / edit_soon_in_stock
EDITABLE_FIELDS = (
    "status", "location", "comment", "adjusted_size",
    "reserved_for", "reservation_time", "warranty_confirmed",
)

_LABELS = {
    "location": "Location",
    "comment": "Comment",
    "adjusted_size": "Adjusted size",
    "warranty_confirmed": "Warranty confirmed",
}


def _naive_utc(val: Optional[datetime]) -> Optional[datetime]:
    if val is None or val.tzinfo is None:
        return val
    return val.astimezone(timezone.utc).replace(tzinfo=None)


def _family(info: Dict[str, Any]) -> Tuple:
    """Models that can swap dials/bracelets share a sale reference."""
    if info.get("saleReference"):
        return ("saleReference", info["saleReference"])
    return ("case", info.get("collection"), info.get("caseMaterial"), info.get("diameter"))


def _traits(model: ProductModel) -> Tuple[Optional[str], Optional[str]]:
    info = model.basic_info or {}
    return info.get("dial"), info.get("bracelet")


def _earliest(items: List[Item]) -> Optional[Item]:
    if not items:
        return None
    return min(items, key=lambda i: (i.stock_date, i.id or 0))


class ItemLifecycleEngine:
    """State transitions and moves of serialized items, each with its activity."""

    def __init__(self, db: AsyncSession, user: str):
        self.db = db
        self.user = user
        self.products = ProductModelStore(db)
        self.soon = SoonInStockStore(db)
        self.activities = ActivityLog(db)

    async def _client(self, client_id: int) -> Client:
        client = await self.db.get(Client, client_id)
        if client is None:
            raise NotFound(f"Client not found: {client_id}", client=client_id)
        return client

    async def _client_name(self, client_id: Optional[int]) -> str:
        if client_id is None:
            return "empty"
        client = await self.db.get(Client, client_id)
        return client.name if client is not None else f"client #{client_id}"

    # =========================================================================
    # Status / reservation edits
    # =========================================================================

    async def _apply_edit(self, target, patch: Dict[str, Any], now: datetime) -> List[str]:
        """
        Apply a field patch to an Item or SoonInStock record.

        Returns one sentence per changed field. Reserved statuses require a
        client; leaving them clears the reservation.
        """
        unknown = set(patch) - set(EDITABLE_FIELDS)
        if unknown:
            raise NotAcceptable(f"Fields cannot be edited: {', '.join(sorted(unknown))}", fields=sorted(unknown))
        if "status" in patch and patch["status"] is None:
            raise MissingStatus("Status cannot be empty")

        old_status = target.status
        new_status = patch.get("status", old_status)
        reserved_for = patch.get("reserved_for", target.reserved_for)
        reservation_time = _naive_utc(patch.get("reservation_time", target.reservation_time))

        if new_status in RESERVED_STATUSES:
            if reserved_for is None:
                raise MissingParameters(
                    f"{new_status.value} requires reservedFor", field="reservedFor",
                )
            await self._client(reserved_for)
            if reservation_time is None:
                reservation_time = now
        else:
            reserved_for = None
            reservation_time = None

        sentences: List[str] = []

        if new_status != old_status:
            confirm = old_status == ItemStatus.pre_reserved and new_status == ItemStatus.reserved
            if confirm:
                sentences.append(f"Reservation for {await self._client_name(reserved_for)} confirmed.")
            else:
                sentences.append(narrate_change("Status", old_status, new_status))
                if old_status is not None:
                    target.previous_status = old_status
            target.status = new_status

        for key in ("location", "comment", "adjusted_size", "warranty_confirmed"):
            if key in patch and patch[key] != getattr(target, key):
                sentences.append(narrate_change(_LABELS[key], getattr(target, key), patch[key]))
                setattr(target, key, patch[key])

        if reserved_for != target.reserved_for:
            if target.reserved_for is None:
                sentences.append(f"Reserved for {await self._client_name(reserved_for)}.")
            elif reserved_for is None:
                sentences.append(f"Reservation for {await self._client_name(target.reserved_for)} cancelled.")
            else:
                sentences.append(narrate_change(
                    "Reserved for",
                    await self._client_name(target.reserved_for),
                    await self._client_name(reserved_for),
                ))
            target.reserved_for = reserved_for

        if reservation_time != target.reservation_time:
            if target.reservation_time is None:
                sentences.append(f"Reservation time set to {reservation_time:%d.%m.%Y %H:%M}.")
            elif reservation_time is None:
                sentences.append("Reservation time cleared.")
            else:
                sentences.append(narrate_change("Reservation time", target.reservation_time, reservation_time))
            target.reservation_time = reservation_time

        return sentences

    async def edit_item(self, serial_number: str, patch: Dict[str, Any]):
        """editWatch: returns (model, boutique, item, activity or None)."""
        model, boutique, item = await self.products.find_item(serial_number)
        sentences = await self._apply_edit(item, patch, utcnow())
        activity = None
        if sentences:
            await self.db.flush()
            activity = await self.activities.record(
                ActivityType.status_change, self.user,
                client_id=item.reserved_for,
                comment=join_sentences(sentences),
                product_model_id=model.id,
                serial_number=item.number,
            )
            logger.info("Edited %s: %s", item.number, activity.comment)
        return model, boutique, item, activity

    async def edit_soon_in_stock(self, record_id: int, patch: Dict[str, Any]):
        """editSoonInStock: returns (record, activity or None)."""
        record = await self.soon.get(record_id)
        sentences = await self._apply_edit(record, patch, utcnow())
        activity = None
        if sentences:
            await self.db.flush()
            activity = await self.activities.record(
                ActivityType.soon_in_stock, self.user,
                client_id=record.reserved_for,
                comment=join_sentences(sentences),
                product_model_id=record.product_model_id,
                serial_number=record.number,
            )
        return record, activity

    # =========================================================================
    # Moves
    # =========================================================================

    async def change_store(self, serial_number: str, store_name: str):
        model, source, item = await self.products.find_item(serial_number)
        if source.store_name == store_name:
            raise NotAcceptable(
                f"Serial number {serial_number} is already in {store_name}",
                serialNumber=serial_number, store=store_name,
            )
        store = await self.products.get_store(store_name)
        dest = await self.products.ensure_boutique(model, store)

        await self.products.move_item(item, source, dest)
        item.origin = source.store_name
        await self.db.flush()

        activity = await self.activities.record(
            ActivityType.store_change, self.user,
            client_id=item.reserved_for,
            comment=narrate_change("Store", source.store_name, store.name),
            product_model_id=model.id,
            serial_number=item.number,
        )
        logger.info("Moved %s from %s to %s", item.number, source.store_name, store.name)
        return model, dest, item, activity

    async def change_rmc(self, serial_number: str, rmc: str):
        model, source, item = await self.products.find_item(serial_number)
        target = await self.products.get_by_identity(model.brand, rmc)
        if target.id == model.id:
            raise NotAcceptable(
                f"Serial number {serial_number} already belongs to {rmc}",
                serialNumber=serial_number, rmc=rmc,
            )
        store = await self.products.get_store(source.store_name)
        dest = await self.products.ensure_boutique(target, store)

        await self.products.move_item(item, source, dest)
        migrated = await self.activities.migrate_product(item.number, target.id)

        activity = await self.activities.record(
            ActivityType.rmc_change, self.user,
            client_id=item.reserved_for,
            comment=narrate_change("RMC", model.rmc, target.rmc),
            product_model_id=target.id,
            serial_number=item.number,
        )
        logger.info("Moved %s from %s to %s (%d activities migrated)", item.number, model.rmc, target.rmc, migrated)
        return target, dest, item, activity

    # =========================================================================
    # Part exchange
    # =========================================================================

    async def _family_models(self, model: ProductModel) -> List[ProductModel]:
        _, models = await self.products.find_by_brand(model.brand)
        family = _family(model.basic_info or {})
        return [m for m in models if _family(m.basic_info or {}) == family and m.status != ProductStatus.deleted]

    async def _hybrid(self, family: List[ProductModel], base: ProductModel,
                      dial: Optional[str], bracelet: Optional[str], save: bool) -> Tuple[Optional[ProductModel], str]:
        """Model of the family with the given traits; created from ``base`` when absent and saving."""
        for m in family:
            if _traits(m) == (dial, bracelet):
                return m, m.rmc
        info = base.basic_info or {}
        rmc = f"{info.get('saleReference') or base.rmc}|{dial}|{bracelet}"
        existing = await self.products.find_by_identity(base.brand, rmc)
        if existing is not None:
            return existing, rmc
        if not save:
            return None, rmc

        stores = await self.products.list_stores()
        prices = {b.store_name: b.price for b in base.boutiques}
        hybrid_info = {
            **info,
            "dial": dial,
            "bracelet": bracelet,
            "materialDescription": ", ".join(p for p in (dial, bracelet) if p),
            "hybrid": True,
        }
        model = await self.products.create_model(base.brand, base.category, rmc, hybrid_info, prices, stores)
        logger.info("Created hybrid model %s", rmc)
        return model, rmc

    async def exchange_parts(
        self,
        brand,
        rmc: str,
        store_name: str,
        dial: Optional[str] = None,
        bracelet: Optional[str] = None,
        other_store: Optional[str] = None,
        serial_number: Optional[str] = None,
        save: bool = False,
    ) -> Dict[str, Any]:
        """
        Swap a dial and/or bracelet between two items of one family.

        The source item gets the requested parts and moves to the desired
        identity; the donor item gets the source's parts and moves to the
        byproduct identity. Both items stay in their stores.
        """
        if not dial and not bracelet:
            raise MissingParameters("dial or bracelet is required", fields=["dial", "bracelet"])

        source_model = await self.products.get_by_identity(brand, rmc)
        source_b = source_model.boutique_for(store_name)
        if source_b is None or not source_b.items:
            raise NotFound(f"No {rmc} in {store_name}", rmc=rmc, store=store_name)
        if serial_number:
            source_item = next((i for i in source_b.items if i.number == serial_number), None)
            if source_item is None:
                raise NotFound(f"Serial number {serial_number} not in {rmc} / {store_name}", serialNumber=serial_number)
        else:
            source_item = _earliest(list(source_b.items))

        src_dial, src_bracelet = _traits(source_model)
        desired = (dial or src_dial, bracelet or src_bracelet)
        if desired == (src_dial, src_bracelet):
            raise NotAcceptable(f"{rmc} already has dial {src_dial} and bracelet {src_bracelet}", rmc=rmc)

        other_store = other_store or store_name
        family = await self._family_models(source_model)
        candidates: List[Tuple[ProductModel, Boutique, Item]] = []
        for m in family:
            if m.id == source_model.id:
                continue
            m_dial, m_bracelet = _traits(m)
            if dial and m_dial != dial:
                continue
            if bracelet and m_bracelet != bracelet:
                continue
            b = m.boutique_for(other_store)
            if b is not None:
                candidates.extend((m, b, i) for i in b.items)
        if not candidates:
            raise NotFound(
                f"No compatible item for {rmc} in {other_store}",
                rmc=rmc, store=other_store, dial=dial, bracelet=bracelet,
            )
        other_model, other_b, other_item = min(candidates, key=lambda c: (c[2].stock_date, c[2].id or 0))

        other_dial, other_bracelet = _traits(other_model)
        byproduct = (src_dial if dial else other_dial, src_bracelet if bracelet else other_bracelet)

        desired_model, desired_rmc = await self._hybrid(family, source_model, desired[0], desired[1], save)
        byproduct_model, byproduct_rmc = await self._hybrid(family, other_model, byproduct[0], byproduct[1], save)

        plan = {
            "source": {"serialNumber": source_item.number, "rmc": source_model.rmc, "store": source_b.store_name},
            "other": {"serialNumber": other_item.number, "rmc": other_model.rmc, "store": other_b.store_name},
            "desired": {"rmc": desired_rmc, "dial": desired[0], "bracelet": desired[1]},
            "byproduct": {"rmc": byproduct_rmc, "dial": byproduct[0], "bracelet": byproduct[1]},
            "saved": save,
        }
        if not save:
            return plan

        now = utcnow()
        desired_b = await self.products.ensure_boutique(desired_model, await self.products.get_store(source_b.store_name))
        byproduct_b = await self.products.ensure_boutique(byproduct_model, await self.products.get_store(other_b.store_name))

        parts = " and ".join(p for p, wanted in (("dial", dial), ("bracelet", bracelet)) if wanted)
        for item, src_b, dest_b, from_rmc, to_model, peer in (
            (source_item, source_b, desired_b, source_model.rmc, desired_model, other_item.number),
            (other_item, other_b, byproduct_b, other_model.rmc, byproduct_model, source_item.number),
        ):
            if src_b is not dest_b:
                await self.products.move_item(item, src_b, dest_b)
            await self.products.update_item_fields(
                item.number, {"modified": True, "modification_date": now, "modified_by": self.user},
            )
            await self.activities.record(
                ActivityType.part_exchange, self.user,
                client_id=item.reserved_for,
                comment=f"Exchanged {parts} with {peer}. " + narrate_change("RMC", from_rmc, to_model.rmc),
                product_model_id=to_model.id,
                serial_number=item.number,
            )
        await self.db.flush()
        logger.info(
            "Part exchange: %s -> %s, %s -> %s",
            source_item.number, desired_model.rmc, other_item.number, byproduct_model.rmc,
        )
        return plan

    # =========================================================================
    # Stock intake
    # =========================================================================

    async def _resolve_rows(self, rows) -> List[Tuple[Any, ProductModel, Store]]:
        """Look up model and store for every row before anything is written."""
        stores: Dict[str, Store] = {}
        resolved = []
        for r in rows:
            if r.store_name not in stores:
                stores[r.store_name] = await self.products.get_store(r.store_name)
            model = await self.products.find_by_identity(r.brand, r.rmc)
            if model is None:
                raise NotFound(
                    f"Row {r.row_number}: product model not found: {r.brand.value} {r.rmc}",
                    row=r.row_number, brand=r.brand.value, rmc=r.rmc,
                )
            if r.status in RESERVED_STATUSES:
                raise MissingParameters(
                    f"Row {r.row_number}: {r.status.value} items need a client, import them as Stock",
                    row=r.row_number, column="Status",
                )
            resolved.append((r, model, stores[r.store_name]))
        return resolved

    async def _reject_known_serials(self, resolved, allow_same_boutique: bool = False) -> None:
        """Serials already pending, or in stock elsewhere, fail before any write."""
        numbers = [r.number for r, _, _ in resolved]
        in_stock = await self.products.serial_numbers_in_stock(numbers)
        pending = await self.soon.serial_numbers(numbers)
        for r, model, store in resolved:
            existing = in_stock.get(r.number)
            if existing is not None and allow_same_boutique:
                boutique = model.boutique_for(store.name)
                if boutique is not None and existing.boutique_id == boutique.id:
                    existing = None
            if r.number in pending or existing is not None:
                raise NotAcceptable(
                    f"Row {r.row_number}: serial number {r.number} is already registered",
                    row=r.row_number, serialNumber=r.number,
                )

    async def import_stock(self, rows: List[StockRow]) -> List[Item]:
        """Direct stock sheet: every row becomes an item in its boutique."""
        resolved = await self._resolve_rows(rows)
        await self._reject_known_serials(resolved, allow_same_boutique=True)
        now = utcnow()
        items = []
        for r, model, store in resolved:
            await self.products.ensure_boutique(model, store)
            item = Item(
                number=r.number,
                status=r.status,
                location=r.location,
                comment=r.comment,
                stock_date=r.stock_date or now,
                warranty_confirmed=False,
                modified=False,
                extra={},
            )
            stored = await self.products.add_item_to_boutique(model, store.name, item)
            if stored is not item:
                continue
            await self.activities.record(
                ActivityType.stock_import, self.user,
                comment=f"Imported into {store.name} with status {r.status.value}.",
                product_model_id=model.id,
                serial_number=item.number,
            )
            items.append(item)
        logger.info("Stock import: %d of %d rows added", len(items), len(rows))
        return items

    async def import_soon_in_stock(self, rows: List[SoonInStockRow]) -> List[SoonInStock]:
        """Shipment sheet: every row becomes a pre-stock record."""
        resolved = await self._resolve_rows(rows)
        await self._reject_known_serials(resolved)
        records = []
        for r, model, store in resolved:
            record = await self.soon.add(SoonInStock(
                product_model=model,
                store=store,
                number=r.number,
                status=r.status or ItemStatus.new_stock,
                location=settings.DEFAULT_LOCATION,
                comment=r.comment,
                sold_to_party=r.sold_to_party,
                invoice_number=r.invoice_number,
                invoice_date=r.invoice_date,
                shipment_date=r.shipment_date,
                ex_geneva_price=r.ex_geneva_price,
                warranty_confirmed=False,
                extra={},
            ))
            await self.activities.record(
                ActivityType.soon_in_stock, self.user,
                comment=f"Expected in {store.name}, shipped {r.shipment_date:%d.%m.%Y}.",
                product_model_id=model.id,
                serial_number=r.number,
            )
            records.append(record)
        logger.info("Soon-in-stock import: %d records", len(records))
        return records

    async def _stock_status(self, record: SoonInStock) -> ItemStatus:
        model = record.product_model
        collection = (model.basic_info or {}).get("collection")
        if collection in settings.WISHLIST_COLLECTIONS:
            return ItemStatus.wishlist
        stmt = select(Wishlist.id).where(
            Wishlist.rmc == model.rmc,
            Wishlist.store_id == record.store_id,
            Wishlist.status == WishlistStatus.active,
        ).limit(1)
        if (await self.db.execute(stmt)).scalar() is not None:
            return ItemStatus.wishlist
        if record.status in RESERVED_STATUSES:
            return record.status
        return ItemStatus.stock

    async def _upsert_shipment(self, record: SoonInStock) -> Shipment:
        result = await self.db.execute(select(Shipment).where(Shipment.invoice_number == record.invoice_number))
        shipment = result.scalar_one_or_none()
        deadline = record.invoice_date + timedelta(days=settings.PAYMENT_TERM_DAYS)
        if shipment is None:
            shipment = Shipment(
                invoice_number=record.invoice_number,
                store_id=record.store_id,
                sold_to_party=record.sold_to_party,
                invoice_date=record.invoice_date,
                shipment_date=record.shipment_date,
                payment_deadline=deadline,
                amount=record.ex_geneva_price,
                quantity=1,
            )
            self.db.add(shipment)
        else:
            shipment.amount = (shipment.amount or 0) + record.ex_geneva_price
            shipment.quantity = (shipment.quantity or 0) + 1
            shipment.invoice_date = record.invoice_date
            shipment.shipment_date = record.shipment_date
            shipment.payment_deadline = deadline
            if record.sold_to_party:
                shipment.sold_to_party = record.sold_to_party
        await self.db.flush()
        return shipment

    async def add_to_stock(self, record_id: int):
        """Promote a pre-stock record into an item of its boutique."""
        record = await self.soon.get(record_id)
        if not record.invoice_number:
            raise MissingInvoiceNumber(f"{record.number}: missing invoice number", serialNumber=record.number)
        if record.invoice_date is None:
            raise MissingInvoiceDate(f"{record.number}: missing invoice date", serialNumber=record.number)
        if record.shipment_date is None:
            raise MissingShipmentDate(f"{record.number}: missing shipment date", serialNumber=record.number)
        if record.ex_geneva_price is None:
            raise MissingExGenevaPrice(f"{record.number}: missing ex-Geneva price", serialNumber=record.number)

        model, store = record.product_model, record.store
        status = await self._stock_status(record)
        reserved = status in RESERVED_STATUSES
        item = Item(
            number=record.number,
            status=status,
            previous_status=record.status if record.status != status else None,
            location=record.location or settings.DEFAULT_LOCATION,
            reserved_for=record.reserved_for if reserved else None,
            reservation_time=record.reservation_time if reserved else None,
            comment=record.comment,
            adjusted_size=record.adjusted_size,
            stock_date=utcnow(),
            warranty_confirmed=bool(record.warranty_confirmed),
            modified=False,
            extra={
                **(record.extra or {}),
                "soldToParty": record.sold_to_party,
                "invoiceNumber": record.invoice_number,
                "invoiceDate": record.invoice_date.isoformat(),
                "shipmentDate": record.shipment_date.isoformat(),
                "exGenevaPrice": money(record.ex_geneva_price),
            },
        )
        await self.products.add_item_to_boutique(model, store.name, item)
        await self.soon.delete(record)

        activity = await self.activities.record(
            ActivityType.added_to_stock, self.user,
            client_id=item.reserved_for,
            comment=f"Added to stock in {store.name} with status {status.value}.",
            product_model_id=model.id,
            serial_number=item.number,
        )
        shipment = await self._upsert_shipment(record)
        logger.info("Promoted %s into %s %s (%s)", item.number, model.rmc, store.name, status.value)
        return model, item, activity, shipment

    # =========================================================================
    # Sale
    # =========================================================================

    async def declare_as_sold(self, serial_number: str, price=None, comment: Optional[str] = None):
        return await SalesService(self.db, self.user).declare_as_sold(serial_number, price=price, comment=comment)
