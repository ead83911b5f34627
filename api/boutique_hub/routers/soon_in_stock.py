# boutique_hub/routers/soon_in_stock.py
"""
Soon-in-stock Router - shipment sheets and promotion into stock.

POST  /soon-in-stock/upload              shipment sheet -> pre-stock records
GET   /soon-in-stock                     paged list
PATCH /soon-in-stock/{id}                status / reservation edits
POST  /soon-in-stock/{id}/add-to-stock   promote into an item
"""
from __future__ import annotations
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.adapters.row_mapper import map_soon_in_stock_rows, read_sheet
from boutique_hub.database import get_session
from boutique_hub.deps import current_user, page
from boutique_hub.errors import MissingParameters
from boutique_hub.models import ItemPatch
from boutique_hub.serializers import (
    serialize_activity, serialize_item, serialize_shipment, serialize_soon_in_stock,
)
from boutique_hub.services import ItemLifecycleEngine, ProductModelStore, SoonInStockStore
from boutique_hub.utils import archive_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/soon-in-stock", tags=["Soon in stock"])


@router.post("/upload")
async def upload_soon_in_stock(
    file: UploadFile = File(...),
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    if not file.filename:
        raise MissingParameters("No file uploaded", field="file")
    content = await file.read()
    archive_upload("uploads_soon_in_stock", file.filename, content)

    rows = map_soon_in_stock_rows(read_sheet(content))
    records = await ItemLifecycleEngine(db, user).import_soon_in_stock(rows)
    return {
        "message": f"{len(records)} items expected",
        "results": [serialize_soon_in_stock(r) for r in records],
    }


@router.get("")
async def list_soon_in_stock(
    store: Optional[str] = Query(None),
    paging: Tuple[int, int] = Depends(page),
    db: AsyncSession = Depends(get_session),
):
    skip, limit = paging
    store_obj = await ProductModelStore(db).get_store(store) if store else None
    count, records = await SoonInStockStore(db).list(skip, limit, store_obj)
    return {
        "message": "Soon in stock",
        "count": count,
        "results": [serialize_soon_in_stock(r) for r in records],
    }


@router.patch("/{record_id}")
async def edit_soon_in_stock(
    record_id: int,
    body: ItemPatch,
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    record, activity = await ItemLifecycleEngine(db, user).edit_soon_in_stock(record_id, body.to_patch())
    return {
        "message": "Updated" if activity else "Nothing changed",
        "results": {
            "record": serialize_soon_in_stock(record),
            "activity": serialize_activity(activity) if activity else None,
        },
    }


@router.post("/{record_id}/add-to-stock")
async def add_to_stock(
    record_id: int,
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    model, item, activity, shipment = await ItemLifecycleEngine(db, user).add_to_stock(record_id)
    return {
        "message": f"{item.number} added to stock",
        "results": {
            "rmc": model.rmc,
            "item": serialize_item(item),
            "activity": serialize_activity(activity),
            "shipment": serialize_shipment(shipment),
        },
    }
