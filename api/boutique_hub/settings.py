# boutique_hub/settings.py
"""
Boutique Hub Settings.
"""
from __future__ import annotations
from pathlib import Path
from typing import Dict, List, Optional, Any
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (upload archive, logs)
    # =========================================================================
    INVENTORY_DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "inventory-data"),
        validation_alias=AliasChoices("INVENTORY_DATA_ROOT", "bh_data_root"),
    )

    # =========================================================================
    # Database
    # =========================================================================
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="boutique_hub", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings (ignored for SQLite)
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # Full URL override, e.g. sqlite+aiosqlite:///./boutique.db
    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "bh_database_url"),
    )
    DB_CREATE_SCHEMA: bool = Field(
        default=True,
        description="Create missing tables and seed the store directory on startup",
    )

    # =========================================================================
    # Pricing
    # =========================================================================
    CATALOG_CURRENCY: str = "EUR"
    # units of local currency per 1 catalog currency unit
    CURRENCY_RATES: Dict[str, float] = Field(default_factory=lambda: {"EUR": 1.0, "RSD": 117.4})

    # Store directory seed: name, code, currency, vat_percent, issues_invoices
    DEFAULT_STORES: List[Dict[str, Any]] = Field(default_factory=lambda: [
        {"name": "Belgrade", "code": "BG", "currency": "RSD", "vat_percent": 20, "issues_invoices": True},
        {"name": "Budva", "code": "BD", "currency": "EUR", "vat_percent": 21, "issues_invoices": False},
        {"name": "Porto Montenegro", "code": "PM", "currency": "EUR", "vat_percent": 21, "issues_invoices": False},
    ])

    # =========================================================================
    # Item lifecycle
    # =========================================================================
    INVOICE_PREFIX: str = "RID"
    PAYMENT_TERM_DAYS: int = 75
    DEFAULT_LOCATION: str = "Safe"

    WISHLIST_COLLECTIONS: List[str] = Field(default_factory=lambda: [
        "Cosmograph Daytona", "GMT-Master II", "Submariner",
    ])
    # Ordered product groups; the index distance between the sold model's group
    # and a wishlist's group picks the "Recent purchase" window.
    PRODUCT_GROUPS: List[List[str]] = Field(default_factory=lambda: [
        ["Cosmograph Daytona", "Sky-Dweller", "Day-Date"],
        ["GMT-Master II", "Yacht-Master", "Sea-Dweller", "Deepsea"],
        ["Submariner", "Explorer", "Explorer II"],
        ["Datejust", "Lady-Datejust", "Oyster Perpetual"],
    ])
    RECENT_PURCHASE_DAYS: List[int] = Field(default_factory=lambda: [365, 270, 180, 90])

    # Mark models missing from a confirmed catalog as deleted.
    RETIRE_MISSING_MODELS: bool = False

    # =========================================================================
    # API
    # =========================================================================
    PAGE_LIMIT: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()

INVENTORY_DATA_ROOT = settings.INVENTORY_DATA_ROOT
