# boutique_hub/services/review_staging.py
"""
Review staging: the latest catalog upload's proposed changes.

Not a queue. Every upload deletes the previous batch and inserts its own.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.db_models import Classification, ModifiedProduct
from boutique_hub.utils import utcnow

logger = logging.getLogger(__name__)

STAGED = (Classification.new, Classification.changed, Classification.restored)


class ReviewStaging:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def replace_batch(self, diffs) -> int:
        """Delete every staged record, then insert the staged diffs."""
        await self.db.execute(delete(ModifiedProduct))
        now = utcnow()
        records = [
            ModifiedProduct(
                brand=d.brand,
                category=d.category,
                rmc=d.rmc,
                status=d.classification,
                row_number=d.row_number,
                basic_info=d.basic_info,
                boutiques=d.boutiques,
                changes=d.to_dict()["changes"],
                created_at=now,
            )
            for d in diffs
            if d.classification in STAGED
        ]
        self.db.add_all(records)
        await self.db.flush()
        logger.info("Staged %d proposed changes", len(records))
        return len(records)

    async def counts(self) -> Dict[str, int]:
        stmt = select(ModifiedProduct.status, func.count(ModifiedProduct.id)).group_by(ModifiedProduct.status)
        found = {status: n for status, n in (await self.db.execute(stmt)).all()}
        return {c.value: found.get(c, 0) for c in STAGED}

    async def list_batch(self, skip: int = 0, limit: int = 50,
                         status: Optional[Classification] = None) -> Dict[str, Any]:
        conditions = [ModifiedProduct.status == status] if status is not None else []
        total = (await self.db.execute(
            select(func.count(ModifiedProduct.id)).where(*conditions)
        )).scalar() or 0
        stmt = (
            select(ModifiedProduct)
            .where(*conditions)
            .order_by(ModifiedProduct.row_number, ModifiedProduct.id)
            .offset(skip)
            .limit(limit)
        )
        records: List[ModifiedProduct] = list((await self.db.execute(stmt)).scalars())
        return {"count": total, "counts": await self.counts(), "results": records}
