# boutique_hub/routers/items.py
"""
Items Router - lifecycle actions on a serialized item.

PATCH /items/{serial}                 status, location, reservation edits
POST  /items/{serial}/change-store    move to another store's boutique entry
POST  /items/{serial}/change-rmc      move to another product model
POST  /items/exchange-parts           swap dial / bracelet between two items
POST  /items/{serial}/sell            declare sold
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.database import get_session
from boutique_hub.deps import current_user
from boutique_hub.models import ChangeRmcIn, ChangeStoreIn, ExchangePartsIn, ItemPatch, SellIn
from boutique_hub.serializers import serialize_activity, serialize_item, serialize_report
from boutique_hub.services import ItemLifecycleEngine

router = APIRouter(prefix="/items", tags=["Items"])


def _moved(model, boutique, item, activity, message: str) -> dict:
    return {
        "message": message,
        "results": {
            "rmc": model.rmc,
            "storeName": boutique.store_name,
            "quantity": boutique.quantity,
            "item": serialize_item(item),
            "activity": serialize_activity(activity) if activity else None,
        },
    }


@router.post("/exchange-parts")
async def exchange_parts(
    body: ExchangePartsIn,
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    plan = await ItemLifecycleEngine(db, user).exchange_parts(
        body.brand, body.rmc, body.store,
        dial=body.dial, bracelet=body.bracelet,
        other_store=body.other_store, serial_number=body.serial_number,
        save=body.save,
    )
    return {"message": "Parts exchanged" if body.save else "Exchange plan", "results": plan}


@router.patch("/{serial_number}")
async def edit_item(
    serial_number: str,
    body: ItemPatch,
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    model, boutique, item, activity = await ItemLifecycleEngine(db, user).edit_item(serial_number, body.to_patch())
    return _moved(model, boutique, item, activity, "Updated" if activity else "Nothing changed")


@router.post("/{serial_number}/change-store")
async def change_store(
    serial_number: str,
    body: ChangeStoreIn,
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    model, boutique, item, activity = await ItemLifecycleEngine(db, user).change_store(serial_number, body.store)
    return _moved(model, boutique, item, activity, f"Moved to {boutique.store_name}")


@router.post("/{serial_number}/change-rmc")
async def change_rmc(
    serial_number: str,
    body: ChangeRmcIn,
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    model, boutique, item, activity = await ItemLifecycleEngine(db, user).change_rmc(serial_number, body.rmc)
    return _moved(model, boutique, item, activity, f"Moved to {model.rmc}")


@router.post("/{serial_number}/sell")
async def sell_item(
    serial_number: str,
    body: SellIn,
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    report, activities = await ItemLifecycleEngine(db, user).declare_as_sold(
        serial_number, price=body.price, comment=body.comment,
    )
    return {
        "message": f"{serial_number} sold",
        "results": {
            "report": serialize_report(report),
            "activities": [serialize_activity(a) for a in activities],
        },
    }
