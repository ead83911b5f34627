# boutique_hub/routers/stock.py
"""
Stock Router - direct stock sheets.

Every row is validated and resolved (model, store, serial uniqueness) before
the first item is written.
"""
from __future__ import annotations
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.adapters.row_mapper import map_stock_rows, read_sheet
from boutique_hub.database import get_session
from boutique_hub.deps import current_user
from boutique_hub.errors import InvalidValue, MissingParameters
from boutique_hub.serializers import serialize_item
from boutique_hub.services import ItemLifecycleEngine
from boutique_hub.utils import archive_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stock", tags=["Stock"])


@router.post("/upload")
async def upload_stock(
    store: Optional[str] = Query(None, description="Only accept rows of this boutique"),
    file: UploadFile = File(...),
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    if not file.filename:
        raise MissingParameters("No file uploaded", field="file")
    content = await file.read()
    archive_upload("uploads_stock", file.filename, content)

    rows = map_stock_rows(read_sheet(content))
    if store:
        for r in rows:
            if r.store_name != store:
                raise InvalidValue(
                    f"Row {r.row_number}: boutique {r.store_name} does not match {store}",
                    row=r.row_number, column="Boutique", value=r.store_name,
                )

    items = await ItemLifecycleEngine(db, user).import_stock(rows)
    logger.info("Stock upload by %s: %d items", user, len(items))
    return {
        "message": f"{len(items)} items added to stock",
        "results": [serialize_item(i) for i in items],
    }
