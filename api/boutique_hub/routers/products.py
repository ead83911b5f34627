# boutique_hub/routers/products.py
from __future__ import annotations
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.adapters.brand_schemas import schema_for
from boutique_hub.database import get_session
from boutique_hub.db_models import ProductStatus
from boutique_hub.deps import page
from boutique_hub.serializers import serialize_product_model
from boutique_hub.services import ProductModelStore

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("")
async def list_products(
    brand: Optional[str] = Query(None),
    status: Optional[ProductStatus] = Query(None),
    paging: Tuple[int, int] = Depends(page),
    db: AsyncSession = Depends(get_session),
):
    skip, limit = paging
    brand_enum = schema_for(brand).brand if brand else None
    count, models = await ProductModelStore(db).find_by_brand(brand_enum, skip, limit, status)
    return {
        "message": "Products",
        "count": count,
        "results": [serialize_product_model(m) for m in models],
    }


@router.get("/{brand}/{rmc}")
async def get_product(brand: str, rmc: str, db: AsyncSession = Depends(get_session)):
    model = await ProductModelStore(db).get_by_identity(schema_for(brand).brand, rmc)
    return {"message": "Product", "count": 1, "results": serialize_product_model(model)}
