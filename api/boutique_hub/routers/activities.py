from __future__ import annotations
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.database import get_session
from boutique_hub.deps import page
from boutique_hub.errors import MissingParameters
from boutique_hub.serializers import serialize_activity
from boutique_hub.services import ActivityLog

router = APIRouter(prefix="/activities", tags=["Activities"])


@router.get("")
async def list_activities(
    serial: Optional[str] = Query(None, description="Serial number"),
    product: Optional[int] = Query(None, description="Product model id"),
    paging: Tuple[int, int] = Depends(page),
    db: AsyncSession = Depends(get_session),
):
    """History of a serial number and/or product model, newest first."""
    skip, limit = paging
    log = ActivityLog(db)
    if product is not None:
        records = await log.find_by_product_and_serial(product, serial, skip, limit)
    elif serial:
        records = await log.find_by_serial(serial, skip, limit)
    else:
        raise MissingParameters("serial or product is required", fields=["serial", "product"])
    return {
        "message": "Activities",
        "count": await log.count(product, serial),
        "results": [serialize_activity(a) for a in records],
    }
