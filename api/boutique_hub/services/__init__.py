# boutique_hub/services/__init__.py
"""
Business logic services for Boutique Hub.
"""
from boutique_hub.services.activity import ActivityLog
from boutique_hub.services.catalog_diff import CatalogDiff, CatalogDiffEngine
from boutique_hub.services.catalog_import import CatalogImporter, CatalogImportResult
from boutique_hub.services.lifecycle import ItemLifecycleEngine
from boutique_hub.services.product_models import ProductModelStore
from boutique_hub.services.review_staging import ReviewStaging
from boutique_hub.services.sales import SalesService
from boutique_hub.services.soon_in_stock import SoonInStockStore

__all__ = [
    "ActivityLog",
    "CatalogDiff",
    "CatalogDiffEngine",
    "CatalogImporter",
    "CatalogImportResult",
    "ItemLifecycleEngine",
    "ProductModelStore",
    "ReviewStaging",
    "SalesService",
    "SoonInStockStore",
]
