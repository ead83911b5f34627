# boutique_hub/routers/exports.py
"""Spreadsheet exports (plain data; layout is left to the consumer)."""
from __future__ import annotations
import io
import logging
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.adapters.brand_schemas import schema_for
from boutique_hub.database import get_session
from boutique_hub.services import ProductModelStore
from boutique_hub.utils import money, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exports", tags=["Exports"])

STOCK_COLUMNS = [
    "Brand", "RMC", "Collection", "Boutique", "Serial number", "Status",
    "Location", "Stock date", "Price", "Price local",
]


def stock_rows(models) -> List[Dict[str, Any]]:
    rows = []
    for m in models:
        for b in m.boutiques:
            for i in b.items:
                rows.append({
                    "Brand": m.brand.value,
                    "RMC": m.rmc,
                    "Collection": (m.basic_info or {}).get("collection"),
                    "Boutique": b.store_name,
                    "Serial number": i.number,
                    "Status": i.status.value,
                    "Location": i.location,
                    "Stock date": i.stock_date,
                    "Price": money(b.price),
                    "Price local": money(b.price_local),
                })
    return rows


@router.get("/stock.xlsx")
async def export_stock(
    brand: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_session),
):
    brand_enum = schema_for(brand).brand if brand else None
    _, models = await ProductModelStore(db).find_by_brand(brand_enum)
    rows = stock_rows(models)

    buf = io.BytesIO()
    pd.DataFrame(rows, columns=STOCK_COLUMNS).to_excel(buf, index=False, sheet_name="Stock")
    buf.seek(0)

    filename = f"stock_{brand_enum.value if brand_enum else 'all'}_{utcnow():%Y%m%d}.xlsx"
    logger.info("Stock export: %d rows -> %s", len(rows), filename)
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
