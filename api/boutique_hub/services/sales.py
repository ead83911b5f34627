# boutique_hub/services/sales.py
"""
Sales: declare an item sold.

The item leaves inventory; a Report row stands in for it. The invoicing
store numbers its sales RID{YY}-{00000}; that sequence is shared with the
point-of-sale checkout ordinals, so the next number is one past the larger
of the two for the year.
"""
from __future__ import annotations
import logging
import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.db_models import ActivityType, ProductModel, Store
from boutique_hub.db_models_ext import Checkout, Client, Report, Wishlist, WishlistStatus
from boutique_hub.serializers import serialize_item
from boutique_hub.services.activity import ActivityLog
from boutique_hub.services.product_models import ProductModelStore
from boutique_hub.settings import settings
from boutique_hub.utils import currency_rate, local_price, utcnow

logger = logging.getLogger(__name__)


def product_group_distance(a: Optional[str], b: Optional[str]) -> Optional[int]:
    index = {c: i for i, group in enumerate(settings.PRODUCT_GROUPS) for c in group}
    if a not in index or b not in index:
        return None
    return abs(index[a] - index[b])


def recent_purchase_days(sold_collection: Optional[str], wished_collection: Optional[str]) -> int:
    """Closer product groups keep the "Recent purchase" flag longer."""
    days = settings.RECENT_PURCHASE_DAYS
    distance = product_group_distance(sold_collection, wished_collection)
    if distance is None:
        return days[-1]
    return days[min(distance, len(days) - 1)]


class SalesService:
    def __init__(self, db: AsyncSession, user: str):
        self.db = db
        self.user = user
        self.products = ProductModelStore(db)
        self.activities = ActivityLog(db)

    async def next_ordinal(self, store: Store) -> int:
        stmt = select(func.max(Report.ordinal)).where(Report.store_id == store.id)
        return ((await self.db.execute(stmt)).scalar() or 0) + 1

    async def next_invoice_number(self, store: Store, now: datetime) -> str:
        prefix = f"{settings.INVOICE_PREFIX}{now.year % 100:02d}-"
        result = await self.db.execute(
            select(Report.invoice_number).where(
                Report.store_id == store.id,
                Report.invoice_number.like(f"{prefix}%"),
            )
        )
        report_seq = 0
        for number in result.scalars():
            m = re.match(rf"^{re.escape(prefix)}(\d+)$", number or "")
            if m:
                report_seq = max(report_seq, int(m.group(1)))

        checkout_seq = (await self.db.execute(
            select(func.max(Checkout.ordinal)).where(Checkout.store_id == store.id, Checkout.year == now.year)
        )).scalar() or 0

        return f"{prefix}{max(report_seq, checkout_seq) + 1:05d}"

    async def _cascade_wishlists(self, client_id: int, model: ProductModel, report: Report, now: datetime) -> List:
        result = await self.db.execute(
            select(Wishlist)
            .where(Wishlist.client_id == client_id, Wishlist.status == WishlistStatus.active)
            .order_by(Wishlist.id)
        )
        sold_collection = (model.basic_info or {}).get("collection")
        activities = []
        for w in result.scalars():
            if w.rmc == model.rmc:
                w.status = WishlistStatus.watch_sold
                comment = f"Wishlist for {w.rmc} closed, watch sold."
            else:
                w.status = WishlistStatus.recent_purchase
                w.valid_until = now + timedelta(days=recent_purchase_days(sold_collection, w.collection))
                comment = f"Wishlist for {w.rmc} set to Recent purchase until {w.valid_until:%d.%m.%Y}."
            activities.append(await self.activities.record(
                ActivityType.wishlist, self.user,
                client_id=client_id,
                comment=comment,
                wishlist_id=w.id,
                product_model_id=model.id,
                serial_number=report.serial_number,
                report_id=report.id,
            ))
        return activities

    async def declare_as_sold(self, serial_number: str, price: Optional[Decimal] = None,
                              comment: Optional[str] = None):
        """Returns (report, [activities])."""
        model, boutique, item = await self.products.find_item(serial_number)
        store = await self.products.get_store(boutique.store_name)
        now = utcnow()

        sale_price = Decimal(price) if price is not None else boutique.price
        invoice_number = await self.next_invoice_number(store, now) if store.issues_invoices else None
        client_id = item.reserved_for
        if client_id is not None and await self.db.get(Client, client_id) is None:
            client_id = None

        report = Report(
            store=store,
            store_id=store.id,
            ordinal=await self.next_ordinal(store),
            invoice_number=invoice_number,
            serial_number=item.number,
            product_model_id=model.id,
            brand=model.brand,
            rmc=model.rmc,
            price=sale_price,
            price_local=local_price(sale_price, currency_rate(store.currency)),
            client_id=client_id,
            sold_by=self.user,
            sold_at=now,
            comment=comment,
            item_snapshot={**serialize_item(item), "basicInfo": dict(model.basic_info or {})},
        )
        self.db.add(report)
        await self.db.flush()

        await self.products.remove_item_from_boutique(model, boutique.store_name, item.number)

        sold = f"Sold in {store.name}"
        if invoice_number:
            sold += f", invoice {invoice_number}"
        activities = [await self.activities.record(
            ActivityType.sold, self.user,
            client_id=client_id,
            comment=sold + ".",
            product_model_id=model.id,
            serial_number=report.serial_number,
            report_id=report.id,
        )]
        if client_id is not None:
            activities.extend(await self._cascade_wishlists(client_id, model, report, now))

        logger.info("Sold %s in %s (report %d, invoice %s)", report.serial_number, store.name, report.ordinal, invoice_number)
        return report, activities
