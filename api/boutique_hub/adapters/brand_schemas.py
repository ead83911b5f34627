# -*- coding: utf-8 -*-
"""
Per-brand spreadsheet contracts.

Each brand ships its catalog with a fixed, ordered header row. A schema maps
those headers onto ``basic_info`` keys, names the identity column (stored as
``rmc``), says where prices come from (one column per store, or one retail
column for every store) and which checks apply to a row.

Stock sheets are brand-agnostic and have their own contracts at the bottom.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

from boutique_hub.db_models import Brand, Category
from boutique_hub.errors import NotFound


@dataclass(frozen=True)
class BrandSchema:
    brand: Brand
    category: Category
    headers: Tuple[str, ...]
    fields: Dict[str, str]                       # header -> basic_info key
    identity: str                                # basic_info key used as rmc
    required: Tuple[str, ...] = ("collection",)  # blank -> MissingParameters
    compare: Tuple[str, ...] = ()                # keys the diff engine compares
    numeric: Tuple[str, ...] = ()                # parsed to float
    store_prices: Dict[str, str] = field(default_factory=dict)  # header -> store name
    retail_price: Optional[str] = None           # one column for every store
    purchase_price: Optional[str] = None
    price_required: bool = False
    purchase_price_required: bool = False
    material_description: Optional[str] = None   # split into dial / bracelet when both blank
    separator: str = ","
    materials: FrozenSet[str] = frozenset()      # vocabulary for the "materials" list
    jewelry: bool = False


# ---------------------------------------------------------
# Vocabularies
# ---------------------------------------------------------

ROLEX_MATERIALS = frozenset({
    "Oystersteel", "Yellow gold", "White gold", "Everose gold", "Platinum",
    "RLX titanium", "Yellow Rolesor", "White Rolesor", "Everose Rolesor",
    "Diamonds", "Ceramic",
})

JEWELRY_TYPES = frozenset({"Ring", "Necklace", "Pendant", "Bracelet", "Bangle", "Earrings", "Brooch", "Cufflinks"})
STONE_TYPES = frozenset({
    "None", "Diamond", "Ruby", "Sapphire", "Emerald", "Pearl", "Tsavorite",
    "Amethyst", "Onyx", "Mother of pearl", "Malachite",
})
COLORS = frozenset("DEFGHIJKLM")
CLARITIES = frozenset({"FL", "IF", "VVS1", "VVS2", "VS1", "VS2", "SI1", "SI2", "I1", "I2", "I3"})
SHAPES = frozenset({
    "Round", "Princess", "Oval", "Pear", "Marquise", "Emerald", "Cushion",
    "Heart", "Baguette", "Asscher", "Radiant",
})
CUTS = frozenset({"Excellent", "Very good", "Good", "Fair", "Brilliant"})

_STORE_PRICE_COLUMNS = {
    "Price Belgrade": "Belgrade",
    "Price Budva": "Budva",
    "Price Porto Montenegro": "Porto Montenegro",
}

_WATCH_COMPARE = (
    "collection", "saleReference", "materialDescription", "dial", "bracelet",
    "diameter", "caseMaterial", "braceletType", "materials",
)

_JEWELRY_COMPARE = (
    "collection", "saleReference", "jewelryType", "metal", "stoneType", "carat",
    "color", "clarity", "shape", "cut", "size", "purchasePrice",
)


# ---------------------------------------------------------
# Catalog contracts
# ---------------------------------------------------------

ROLEX = BrandSchema(
    brand=Brand.rolex,
    category=Category.watch,
    headers=(
        "RMC", "Collection", "Sale reference", "Material description", "Dial",
        "Bracelet", "Diameter", "Case material", "Bracelet type", "Materials",
        *_STORE_PRICE_COLUMNS.keys(),
    ),
    fields={
        "RMC": "rmc",
        "Collection": "collection",
        "Sale reference": "saleReference",
        "Material description": "materialDescription",
        "Dial": "dial",
        "Bracelet": "bracelet",
        "Diameter": "diameter",
        "Case material": "caseMaterial",
        "Bracelet type": "braceletType",
        "Materials": "materials",
    },
    identity="rmc",
    required=("collection", "saleReference"),
    compare=_WATCH_COMPARE,
    numeric=("diameter",),
    store_prices=dict(_STORE_PRICE_COLUMNS),
    price_required=True,
    material_description="materialDescription",
    materials=ROLEX_MATERIALS,
)

TUDOR = BrandSchema(
    brand=Brand.tudor,
    category=Category.watch,
    headers=(
        "Reference", "Collection", "Description", "Dial", "Bracelet", "Diameter",
        "Case material", *_STORE_PRICE_COLUMNS.keys(),
    ),
    fields={
        "Reference": "rmc",
        "Collection": "collection",
        "Description": "materialDescription",
        "Dial": "dial",
        "Bracelet": "bracelet",
        "Diameter": "diameter",
        "Case material": "caseMaterial",
    },
    identity="rmc",
    compare=("collection", "materialDescription", "dial", "bracelet", "diameter", "caseMaterial"),
    numeric=("diameter",),
    store_prices=dict(_STORE_PRICE_COLUMNS),
    price_required=True,
    material_description="materialDescription",
)

PANERAI = BrandSchema(
    brand=Brand.panerai,
    category=Category.watch,
    headers=("Reference", "Collection", "Model name", "Case material", "Diameter", "Dial", "Strap", "Retail price"),
    fields={
        "Reference": "rmc",
        "Collection": "collection",
        "Model name": "modelName",
        "Case material": "caseMaterial",
        "Diameter": "diameter",
        "Dial": "dial",
        "Strap": "bracelet",
    },
    identity="rmc",
    compare=("collection", "modelName", "caseMaterial", "diameter", "dial", "bracelet"),
    numeric=("diameter",),
    retail_price="Retail price",
    price_required=True,
)

SWISS_KUBIK = BrandSchema(
    brand=Brand.swiss_kubik,
    category=Category.accessory,
    headers=("Reference", "Collection", "Description", "Color", "Purchase price", "Retail price"),
    fields={
        "Reference": "rmc",
        "Collection": "collection",
        "Description": "description",
        "Color": "colorName",
    },
    identity="rmc",
    compare=("collection", "description", "colorName", "purchasePrice"),
    retail_price="Retail price",
    purchase_price="Purchase price",
    purchase_price_required=True,
)

ROBERTO_COIN = BrandSchema(
    brand=Brand.roberto_coin,
    category=Category.jewelry,
    headers=(
        "Reference", "Collection", "Jewelry type", "Metal", "Stone type", "Carat",
        "Color", "Clarity", "Shape", "Cut", "Size", "Purchase price", "Retail price",
    ),
    fields={
        "Reference": "rmc",
        "Collection": "collection",
        "Jewelry type": "jewelryType",
        "Metal": "metal",
        "Stone type": "stoneType",
        "Carat": "carat",
        "Color": "color",
        "Clarity": "clarity",
        "Shape": "shape",
        "Cut": "cut",
        "Size": "size",
    },
    identity="rmc",
    compare=_JEWELRY_COMPARE,
    numeric=("carat",),
    retail_price="Retail price",
    purchase_price="Purchase price",
    purchase_price_required=True,
    jewelry=True,
)

MESSIKA = BrandSchema(
    brand=Brand.messika,
    category=Category.jewelry,
    headers=("Sale reference", "Collection", "Jewelry type", "Metal", "Stone type", "Carat", "Size", "Retail price"),
    fields={
        "Sale reference": "saleReference",
        "Collection": "collection",
        "Jewelry type": "jewelryType",
        "Metal": "metal",
        "Stone type": "stoneType",
        "Carat": "carat",
        "Size": "size",
    },
    identity="saleReference",
    compare=_JEWELRY_COMPARE,
    numeric=("carat",),
    retail_price="Retail price",
    price_required=True,
    jewelry=True,
)

SCHEMAS: Dict[Brand, BrandSchema] = {
    s.brand: s for s in (ROLEX, TUDOR, PANERAI, SWISS_KUBIK, ROBERTO_COIN, MESSIKA)
}


def schema_for(brand: Brand | str) -> BrandSchema:
    try:
        return SCHEMAS[Brand(brand)]
    except (KeyError, ValueError):
        raise NotFound(f"Unknown brand '{brand}'", brand=str(brand))


# ---------------------------------------------------------
# Stock contracts
# ---------------------------------------------------------

STOCK_HEADERS = (
    "Brand", "RMC", "Serial number", "Boutique", "Status", "Location", "Stock date", "Comment",
)

SOON_IN_STOCK_HEADERS = (
    "Brand", "RMC", "Serial number", "Boutique", "Sold-to party", "Invoice number",
    "Invoice date", "Shipment date", "Ex-Geneva price", "Status", "Comment",
)
