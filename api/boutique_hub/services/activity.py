# boutique_hub/services/activity.py
"""
Activity log - append-only audit trail.

Comments are pre-rendered sentences; the narrate_* helpers build them from
(old, new) pairs so every workflow words its changes the same way.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.db_models import Activity, ActivityType
from boutique_hub.utils import utcnow


def _fmt(val: Any) -> str:
    if val is None or val == "":
        return "empty"
    if isinstance(val, datetime):
        return val.strftime("%d.%m.%Y %H:%M")
    if hasattr(val, "value"):
        return str(val.value)
    return str(val)


def narrate_change(label: str, old: Any, new: Any) -> str:
    return f"{label} changed from {_fmt(old)} to {_fmt(new)}."


def join_sentences(sentences: List[str]) -> str:
    return " ".join(s for s in sentences if s)


class ActivityLog:
    """Append and query activity records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        type: ActivityType | str,
        user: str,
        client_id: Optional[int] = None,
        comment: str = "",
        wishlist_id: Optional[int] = None,
        product_model_id: Optional[int] = None,
        serial_number: Optional[str] = None,
        report_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
        manually_added: bool = False,
    ) -> Activity:
        activity = Activity(
            type=type.value if isinstance(type, ActivityType) else str(type),
            user=user,
            client_id=client_id,
            comment=comment,
            wishlist_id=wishlist_id,
            product_model_id=product_model_id,
            serial_number=serial_number,
            report_id=report_id,
            created_at=created_at or utcnow(),
            manually_added=manually_added,
        )
        self.db.add(activity)
        await self.db.flush()
        return activity

    def _history(self, product_model_id: Optional[int], serial_number: Optional[str]):
        conditions = []
        if product_model_id is not None:
            conditions.append(Activity.product_model_id == product_model_id)
        if serial_number:
            conditions.append(Activity.serial_number == serial_number)
        return conditions

    async def _page(self, conditions, skip: int, limit: Optional[int]) -> List[Activity]:
        stmt = (
            select(Activity)
            .where(*conditions)
            .order_by(Activity.created_at.desc(), Activity.id.desc())
            .offset(skip)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def count(self, product_model_id: Optional[int] = None, serial_number: Optional[str] = None) -> int:
        stmt = select(func.count(Activity.id)).where(*self._history(product_model_id, serial_number))
        return (await self.db.execute(stmt)).scalar() or 0

    async def find_by_serial(self, serial_number: str, skip: int = 0, limit: Optional[int] = None) -> List[Activity]:
        return await self._page(self._history(None, serial_number), skip, limit)

    async def find_by_product_and_serial(self, product_model_id: int, serial_number: Optional[str] = None,
                                         skip: int = 0, limit: Optional[int] = None) -> List[Activity]:
        return await self._page(self._history(product_model_id, serial_number), skip, limit)

    async def migrate_product(self, serial_number: str, product_model_id: int) -> int:
        """Point every record of a serial at another product model (RMC change)."""
        stmt = (
            update(Activity)
            .where(Activity.serial_number == serial_number)
            .values(product_model_id=product_model_id)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0
