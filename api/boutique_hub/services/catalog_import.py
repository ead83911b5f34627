# boutique_hub/services/catalog_import.py
"""
Catalog upload workflow.

    rows (already mapped and validated)
      -> snapshot of the brand's models (once)
      -> CatalogDiffEngine
      -> ReviewStaging (always)
      -> ProductModelStore writes (save=True only)
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy.ext.asyncio import AsyncSession

from boutique_hub.adapters.brand_schemas import schema_for
from boutique_hub.adapters.row_mapper import CatalogRow
from boutique_hub.db_models import Brand, Classification
from boutique_hub.services.catalog_diff import CatalogDiff, CatalogDiffEngine
from boutique_hub.services.product_models import ProductModelStore
from boutique_hub.services.review_staging import ReviewStaging
from boutique_hub.settings import settings
from boutique_hub.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CatalogImportResult:
    brand: Brand
    saved: bool
    diffs: List[CatalogDiff] = field(default_factory=list)
    staged: int = 0
    written: int = 0
    retired: int = 0

    @property
    def counts(self) -> Dict[str, int]:
        out = {c.value: 0 for c in Classification}
        for d in self.diffs:
            out[d.classification.value] += 1
        return out


class CatalogImporter:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.products = ProductModelStore(db)
        self.staging = ReviewStaging(db)

    async def run(self, brand: Brand, rows: List[CatalogRow], save: bool = False) -> CatalogImportResult:
        schema = schema_for(brand)
        stores = await self.products.list_stores()
        snapshot = await self.products.load_snapshot(schema.brand)
        now = utcnow()

        engine = CatalogDiffEngine(stores, schema)
        result = CatalogImportResult(brand=schema.brand, saved=save)
        result.diffs = engine.diff_all(rows, snapshot, now)
        result.staged = await self.staging.replace_batch(result.diffs)

        if save:
            for d in result.diffs:
                if d.classification == Classification.unchanged:
                    continue
                await self.products.upsert_from_catalog_row(d, stores, now)
                result.written += 1
            if settings.RETIRE_MISSING_MODELS:
                result.retired = await self.products.retire_missing(schema.brand, (r.rmc for r in rows))

        logger.info(
            "Catalog %s: %d rows, %d staged, %d written, %d retired (save=%s)",
            schema.brand.value, len(rows), result.staged, result.written, result.retired, save,
        )
        return result
