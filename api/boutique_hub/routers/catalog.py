# boutique_hub/routers/catalog.py
"""
Catalog Router - brand catalog uploads and the review batch.

POST /catalog/{brand}/upload?save=  always stages the diff; writes only with save=true
GET  /catalog/modified              latest upload's proposed changes with counts
"""
from __future__ import annotations
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.adapters.brand_schemas import schema_for
from boutique_hub.adapters.row_mapper import map_catalog_rows, read_sheet
from boutique_hub.database import get_session
from boutique_hub.db_models import Classification
from boutique_hub.deps import current_user, page
from boutique_hub.errors import MissingParameters
from boutique_hub.serializers import serialize_modified
from boutique_hub.services import CatalogImporter, ReviewStaging
from boutique_hub.utils import archive_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["Catalog"])


@router.post("/{brand}/upload")
async def upload_catalog(
    brand: str,
    save: bool = Query(False),
    file: UploadFile = File(...),
    user: str = Depends(current_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Upload a brand catalog (.xlsx).

    1. Archives the file under uploads/catalog/{brand}/
    2. Validates the header row and every data row (any failure rejects the file)
    3. Diffs rows against the brand's models and replaces the review batch
    4. With save=true, writes new / changed / restored models
    """
    schema = schema_for(brand)
    if not file.filename:
        raise MissingParameters("No file uploaded", field="file")

    content = await file.read()
    archived = archive_upload("uploads_catalog", file.filename, content, brand=schema.brand.value)
    logger.info("Catalog upload by %s: %s (%d bytes) -> %s", user, file.filename, len(content), archived)

    rows = map_catalog_rows(read_sheet(content), schema.brand)
    result = await CatalogImporter(db).run(schema.brand, rows, save=save)

    return {
        "message": "Catalog saved" if save else "Catalog staged for review",
        "results": {
            "brand": schema.brand.value,
            "saved": save,
            "counts": result.counts,
            "staged": result.staged,
            "written": result.written,
            "retired": result.retired,
            "rows": [d.to_dict() for d in result.diffs if d.is_staged],
        },
    }


@router.get("/modified")
async def list_modified(
    paging: Tuple[int, int] = Depends(page),
    status: Optional[Classification] = Query(None),
    db: AsyncSession = Depends(get_session),
):
    skip, limit = paging
    batch = await ReviewStaging(db).list_batch(skip, limit, status)
    return {
        "message": "Modified products",
        "count": batch["count"],
        "counts": batch["counts"],
        "results": [serialize_modified(r) for r in batch["results"]],
    }
