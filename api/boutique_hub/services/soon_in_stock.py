# boutique_hub/services/soon_in_stock.py
"""Pre-stock records: items announced by a shipment sheet, not yet in a boutique."""
from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.db_models import SoonInStock, Store
from boutique_hub.errors import NotFound

logger = logging.getLogger(__name__)


class SoonInStockStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, record_id: int) -> SoonInStock:
        record = await self.db.get(SoonInStock, record_id)
        if record is None:
            raise NotFound(f"Soon-in-stock record not found: {record_id}", id=record_id)
        return record

    async def find_by_serial(self, serial_number: str) -> Optional[SoonInStock]:
        result = await self.db.execute(select(SoonInStock).where(SoonInStock.number == serial_number))
        return result.scalar_one_or_none()

    async def serial_numbers(self, numbers: Iterable[str]) -> Dict[str, SoonInStock]:
        numbers = list(numbers)
        if not numbers:
            return {}
        result = await self.db.execute(select(SoonInStock).where(SoonInStock.number.in_(numbers)))
        return {r.number: r for r in result.scalars()}

    async def list(self, skip: int = 0, limit: int = 50, store: Optional[Store] = None) -> Tuple[int, List[SoonInStock]]:
        conditions = [SoonInStock.store_id == store.id] if store is not None else []
        count = (await self.db.execute(select(func.count(SoonInStock.id)).where(*conditions))).scalar() or 0
        stmt = (
            select(SoonInStock)
            .where(*conditions)
            .order_by(SoonInStock.shipment_date, SoonInStock.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return count, list(result.scalars().unique())

    async def add(self, record: SoonInStock) -> SoonInStock:
        self.db.add(record)
        await self.db.flush()
        return record

    async def delete(self, record: SoonInStock) -> None:
        await self.db.delete(record)
        await self.db.flush()
        logger.info("Removed soon-in-stock record %s", record.number)
