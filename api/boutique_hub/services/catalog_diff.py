# boutique_hub/services/catalog_diff.py
"""
Catalog Diff Engine - classify uploaded catalog rows against existing models.

Handles:
- Lookup by identity in a per-upload snapshot (never refreshed mid-upload)
- Per-store price recomputation, matched by store name
- Field-level change detection over the brand's compared fields
- Classification: new / changed / restored / unchanged
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from boutique_hub.adapters.brand_schemas import BrandSchema, schema_for
from boutique_hub.adapters.row_mapper import CatalogRow
from boutique_hub.db_models import (
    Brand, Category, Classification, ProductModel, ProductStatus, Store,
)
from boutique_hub.utils import (
    currency_rate, local_price, money, price_history_entry, same_price, utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class CatalogDiff:
    row_number: int
    brand: Brand
    category: Category
    rmc: str
    classification: Classification
    basic_info: Dict[str, Any]
    boutiques: List[Dict[str, Any]] = field(default_factory=list)
    changes: List[Dict[str, Any]] = field(default_factory=list)
    price_changes: List[Dict[str, Any]] = field(default_factory=list)
    target_prices: Dict[str, Optional[Decimal]] = field(default_factory=dict)
    model_id: Optional[int] = None

    @property
    def is_staged(self) -> bool:
        return self.classification != Classification.unchanged

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row_number,
            "brand": self.brand.value,
            "category": self.category.value,
            "rmc": self.rmc,
            "status": self.classification.value,
            "basicInfo": self.basic_info,
            "boutiques": self.boutiques,
            "changes": self.changes + [
                {"field": f"price.{p['store']}", "old": p["old"], "new": p["new"]}
                for p in self.price_changes
            ],
        }


class CatalogDiffEngine:
    """Diff catalog rows of one brand against a snapshot of its models."""

    def __init__(self, stores: List[Store], schema: Optional[BrandSchema] = None):
        self.stores = stores
        self.schema = schema

    def _compare_fields(self, schema: BrandSchema, old: Dict[str, Any], new: Dict[str, Any]) -> List[Dict[str, Any]]:
        changes = []
        for key in schema.compare:
            before, after = old.get(key), new.get(key)
            if before != after:
                changes.append({"field": key, "old": before, "new": after})
        return changes

    def _boutique_entry(self, model: Optional[ProductModel], store: Store, target: Optional[Decimal],
                        when: datetime, price_changes: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Computed boutique entry for one store; the existing model is not touched."""
        existing = model.boutique_for(store.name) if model is not None else None
        if existing is not None:
            price, vat, loc = existing.price, existing.vat_percent, existing.price_local
            history = list(existing.price_history or [])
            quantity = existing.quantity
        else:
            price, vat, loc, history, quantity = None, store.vat_percent, None, [], 0

        if target is not None and not same_price(price, target):
            if model is not None:
                price_changes.append({"store": store.name, "old": money(price), "new": money(target)})
            price, vat = target, store.vat_percent
            loc = local_price(target, currency_rate(store.currency))
            history.append(price_history_entry(when, price, vat, loc))

        return {
            "store": store.id,
            "storeName": store.name,
            "price": money(price),
            "VATpercent": money(vat),
            "priceLocal": money(loc),
            "priceHistory": history,
            "quantity": quantity,
        }

    def diff(self, row: CatalogRow, snapshot: Dict[str, ProductModel], when: Optional[datetime] = None) -> CatalogDiff:
        when = when or utcnow()
        schema = self.schema or schema_for(row.brand)
        model = snapshot.get(row.rmc)

        price_changes: List[Dict[str, Any]] = []
        target_prices = {s.name: row.price_for(s.name) for s in self.stores}
        boutiques = [
            self._boutique_entry(model, s, target_prices[s.name], when, price_changes)
            for s in self.stores
        ]

        if model is None:
            classification = Classification.new
            changes: List[Dict[str, Any]] = []
        else:
            changes = self._compare_fields(schema, model.basic_info or {}, row.basic_info)
            if model.status == ProductStatus.deleted:
                classification = Classification.restored
            elif changes or price_changes:
                classification = Classification.changed
            else:
                classification = Classification.unchanged

        return CatalogDiff(
            row_number=row.row_number,
            brand=row.brand,
            category=row.category,
            rmc=row.rmc,
            classification=classification,
            basic_info=dict(row.basic_info),
            boutiques=boutiques,
            changes=changes,
            price_changes=price_changes,
            target_prices=target_prices,
            model_id=model.id if model is not None else None,
        )

    def diff_all(self, rows: List[CatalogRow], snapshot: Dict[str, ProductModel],
                 when: Optional[datetime] = None) -> List[CatalogDiff]:
        when = when or utcnow()
        diffs = [self.diff(r, snapshot, when) for r in rows]
        counts: Dict[str, int] = {}
        for d in diffs:
            counts[d.classification.value] = counts.get(d.classification.value, 0) + 1
        logger.info("Catalog diff: %d rows %s", len(diffs), counts)
        return diffs
