# -*- coding: utf-8 -*-
"""
Spreadsheet -> normalized rows.

    read_sheet(bytes)                 first worksheet as raw rows (header included)
    map_catalog_rows(rows, brand)     -> [CatalogRow]
    map_stock_rows(rows)              -> [StockRow]
    map_soon_in_stock_rows(rows)      -> [SoonInStockRow]

The header row must equal the contract exactly (order-sensitive, trimmed);
anything else fails with InvalidColumnName before a single data row is read.
Row checks raise the first error found; callers treat the whole sheet as
rejected.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence, Type

import pandas as pd

from boutique_hub.adapters.brand_schemas import (
    BrandSchema, schema_for,
    STOCK_HEADERS, SOON_IN_STOCK_HEADERS,
    JEWELRY_TYPES, STONE_TYPES, COLORS, CLARITIES, SHAPES, CUTS,
)
from boutique_hub.db_models import Brand, Category, ItemStatus
from boutique_hub.errors import (
    ValidationFailed,
    InvalidColumnName, InvalidValue, MissingParameters,
    MissingPrice, MissingPurchasePrice, InvalidMaterial,
    MissingStatus, MissingLocation, InvalidStockDate,
    MissingExGenevaPrice, MissingShipmentDate, InvalidShipmentDate, InvalidInvoiceDate,
    MissingJewelryType, InvalidJewelryType, InvalidStoneType,
    InvalidColor, InvalidClarity, InvalidShape, InvalidCut,
)
from boutique_hub.utils import cell_str, is_blank, to_decimal, to_date, to_datetime

logger = logging.getLogger(__name__)

ALL_STORES = "*"


@dataclass
class CatalogRow:
    row_number: int
    brand: Brand
    category: Category
    rmc: str
    basic_info: Dict[str, Any]
    prices: Dict[str, Optional[Decimal]] = field(default_factory=dict)

    def price_for(self, store_name: str) -> Optional[Decimal]:
        if store_name in self.prices:
            return self.prices[store_name]
        return self.prices.get(ALL_STORES)


@dataclass
class StockRow:
    row_number: int
    brand: Brand
    rmc: str
    number: str
    store_name: str
    status: ItemStatus
    location: str
    stock_date: Optional[datetime]
    comment: Optional[str]


@dataclass
class SoonInStockRow:
    row_number: int
    brand: Brand
    rmc: str
    number: str
    store_name: str
    sold_to_party: Optional[str]
    invoice_number: Optional[str]
    invoice_date: Optional[date]
    shipment_date: date
    ex_geneva_price: Decimal
    status: Optional[ItemStatus]
    comment: Optional[str]


# ---------------------------------------------------------
# Reading
# ---------------------------------------------------------

def read_sheet(data: bytes) -> List[List[Any]]:
    """First worksheet of an .xlsx upload as a list of rows (NaN -> None)."""
    df = pd.read_excel(io.BytesIO(data), header=None, dtype=object, sheet_name=0)
    df = df.astype(object).where(pd.notna(df), None)
    rows = df.values.tolist()
    logger.info("Read sheet with %d rows x %d columns", len(rows), df.shape[1])
    return rows


def validate_headers(rows: Sequence[Sequence[Any]], expected: Sequence[str]) -> None:
    if not rows:
        raise InvalidColumnName("Empty sheet", row=1, column=1, expected=expected[0] if expected else None, found=None)
    found = [cell_str(c) or "" for c in rows[0]]
    while found and not found[-1]:
        found.pop()
    for i in range(max(len(found), len(expected))):
        exp = expected[i] if i < len(expected) else None
        got = found[i] if i < len(found) else None
        if exp != got:
            raise InvalidColumnName(
                f"Invalid column name in column {i + 1}: expected {exp!r}, found {got!r}",
                row=1, column=i + 1, expected=exp, found=got,
            )


def _data_rows(rows: Sequence[Sequence[Any]], width: int):
    """(excel row number, {header index: value}) for every non-blank data row."""
    for idx, raw in enumerate(rows[1:], start=2):
        cells = list(raw)[:width]
        if all(is_blank(c) for c in cells):
            continue
        cells += [None] * (width - len(cells))
        yield idx, cells


def _decimal(val: Any, row: int, column: str) -> Optional[Decimal]:
    try:
        return to_decimal(val)
    except ValueError:
        raise InvalidValue(f"Row {row}: '{column}' is not a number", row=row, column=column, value=str(val))


def _date(val: Any, row: int, column: str, error: Type[ValidationFailed]) -> Optional[date]:
    try:
        return to_date(val)
    except ValueError:
        raise error(f"Row {row}: invalid {column.lower()} {val!r}", row=row, column=column, value=str(val))


def _status(val: Any, row: int) -> Optional[ItemStatus]:
    s = cell_str(val)
    if s is None:
        return None
    for st in ItemStatus:
        if st.value.lower() == s.lower():
            return st
    raise InvalidValue(f"Row {row}: unknown status {s!r}", row=row, column="Status", value=s)


def _brand(val: Any, row: int) -> Brand:
    s = cell_str(val)
    if s is None:
        raise MissingParameters(f"Row {row}: missing brand", row=row, column="Brand")
    key = s.strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return Brand(key)
    except ValueError:
        raise InvalidValue(f"Row {row}: unknown brand {s!r}", row=row, column="Brand", value=s)


def _vocab(value: Optional[str], allowed: FrozenSet[str], error: Type[ValidationFailed], row: int, column: str) -> Optional[str]:
    """Case-insensitive vocabulary check; ranges like 'F-G' check each end."""
    if value is None:
        return None
    canon = {a.lower(): a for a in allowed}
    parts = [p.strip() for p in value.split("-")] if "-" in value and value.lower() not in canon else [value]
    out = []
    for p in parts:
        hit = canon.get(p.lower())
        if hit is None:
            raise error(f"Row {row}: invalid {column.lower()} {value!r}", row=row, column=column, value=value)
        out.append(hit)
    return "-".join(out)


# ---------------------------------------------------------
# Catalog
# ---------------------------------------------------------

def _split_material_description(info: Dict[str, Any], schema: BrandSchema) -> None:
    if not schema.material_description:
        return
    if info.get("dial") or info.get("bracelet"):
        return
    desc = info.get(schema.material_description)
    if not desc:
        return
    parts = [p.strip() for p in str(desc).split(schema.separator)]
    if parts and parts[0]:
        info["dial"] = parts[0]
    if len(parts) > 1 and parts[1]:
        info["bracelet"] = parts[1]


def _check_jewelry(info: Dict[str, Any], row: int) -> None:
    if not info.get("jewelryType"):
        raise MissingJewelryType(f"Row {row}: missing jewelry type", row=row, column="Jewelry type")
    checks: List[tuple] = [
        ("jewelryType", "Jewelry type", JEWELRY_TYPES, InvalidJewelryType),
        ("stoneType", "Stone type", STONE_TYPES, InvalidStoneType),
        ("color", "Color", COLORS, InvalidColor),
        ("clarity", "Clarity", CLARITIES, InvalidClarity),
        ("shape", "Shape", SHAPES, InvalidShape),
        ("cut", "Cut", CUTS, InvalidCut),
    ]
    for key, column, allowed, error in checks:
        if key in info:
            info[key] = _vocab(info.get(key), allowed, error, row, column)


def map_catalog_row(schema: BrandSchema, row_number: int, cells: Sequence[Any]) -> CatalogRow:
    by_header = dict(zip(schema.headers, cells))
    info: Dict[str, Any] = {}
    rmc: Optional[str] = None

    for header, key in schema.fields.items():
        raw = by_header.get(header)
        if key in schema.numeric:
            num = _decimal(raw, row_number, header)
            val: Any = float(num) if num is not None else None
        else:
            val = cell_str(raw)
        if key == "rmc":
            rmc = val
            continue
        info[key] = val

    if schema.identity != "rmc":
        rmc = info.get(schema.identity)
    if not rmc:
        raise MissingParameters(f"Row {row_number}: missing {schema.identity}", row=row_number, column=schema.identity)
    for key in schema.required:
        if not info.get(key):
            raise MissingParameters(f"Row {row_number}: missing {key}", row=row_number, column=key)

    if "materials" in info:
        mats = [m.strip() for m in (info.get("materials") or "").split("/") if m.strip()]
        if schema.materials:
            canon = {a.lower(): a for a in schema.materials}
            bad = [m for m in mats if m.lower() not in canon]
            if bad:
                raise InvalidMaterial(
                    f"Row {row_number}: invalid material {bad[0]!r}", row=row_number, column="Materials", value=bad[0]
                )
            mats = [canon[m.lower()] for m in mats]
        info["materials"] = mats

    _split_material_description(info, schema)

    if schema.jewelry:
        _check_jewelry(info, row_number)

    prices: Dict[str, Optional[Decimal]] = {}
    for header, store_name in schema.store_prices.items():
        price = _decimal(by_header.get(header), row_number, header)
        if price is None and schema.price_required:
            raise MissingPrice(f"Row {row_number}: missing {header}", row=row_number, column=header, store=store_name)
        prices[store_name] = price
    if schema.retail_price:
        price = _decimal(by_header.get(schema.retail_price), row_number, schema.retail_price)
        if price is None and schema.price_required:
            raise MissingPrice(f"Row {row_number}: missing {schema.retail_price}", row=row_number, column=schema.retail_price)
        prices[ALL_STORES] = price
    if schema.purchase_price:
        purchase = _decimal(by_header.get(schema.purchase_price), row_number, schema.purchase_price)
        if purchase is None and schema.purchase_price_required:
            raise MissingPurchasePrice(
                f"Row {row_number}: missing {schema.purchase_price}", row=row_number, column=schema.purchase_price
            )
        info["purchasePrice"] = float(purchase) if purchase is not None else None

    return CatalogRow(
        row_number=row_number,
        brand=schema.brand,
        category=schema.category,
        rmc=rmc,
        basic_info=info,
        prices=prices,
    )


def map_catalog_rows(rows: Sequence[Sequence[Any]], brand: Brand | str) -> List[CatalogRow]:
    schema = schema_for(brand)
    validate_headers(rows, schema.headers)
    out = [map_catalog_row(schema, n, cells) for n, cells in _data_rows(rows, len(schema.headers))]
    logger.info("Mapped %d %s catalog rows", len(out), schema.brand.value)
    return out


# ---------------------------------------------------------
# Stock sheets
# ---------------------------------------------------------

def _required(cells: Dict[str, Any], row: int, *columns: str) -> Dict[str, str]:
    out = {}
    for c in columns:
        v = cell_str(cells.get(c))
        if v is None:
            raise MissingParameters(f"Row {row}: missing {c}", row=row, column=c)
        out[c] = v
    return out


def _unique_serials(rows: List[Any], getter: Callable[[Any], str]) -> None:
    seen: Dict[str, int] = {}
    for r in rows:
        n = getter(r)
        if n in seen:
            raise InvalidValue(
                f"Row {r.row_number}: serial number {n!r} already used in row {seen[n]}",
                row=r.row_number, column="Serial number", value=n,
            )
        seen[n] = r.row_number


def map_stock_rows(rows: Sequence[Sequence[Any]]) -> List[StockRow]:
    validate_headers(rows, STOCK_HEADERS)
    out: List[StockRow] = []
    for n, cells in _data_rows(rows, len(STOCK_HEADERS)):
        c = dict(zip(STOCK_HEADERS, cells))
        brand = _brand(c["Brand"], n)
        req = _required(c, n, "RMC", "Serial number", "Boutique")
        status = _status(c["Status"], n)
        if status is None:
            raise MissingStatus(f"Row {n}: missing status", row=n, column="Status")
        location = cell_str(c["Location"])
        if location is None:
            raise MissingLocation(f"Row {n}: missing location", row=n, column="Location")
        try:
            stock_date = to_datetime(c["Stock date"])
        except ValueError:
            raise InvalidStockDate(f"Row {n}: invalid stock date {c['Stock date']!r}", row=n, column="Stock date")
        out.append(StockRow(
            row_number=n,
            brand=brand,
            rmc=req["RMC"],
            number=req["Serial number"],
            store_name=req["Boutique"],
            status=status,
            location=location,
            stock_date=stock_date,
            comment=cell_str(c["Comment"]),
        ))
    _unique_serials(out, lambda r: r.number)
    logger.info("Mapped %d stock rows", len(out))
    return out


def map_soon_in_stock_rows(rows: Sequence[Sequence[Any]]) -> List[SoonInStockRow]:
    validate_headers(rows, SOON_IN_STOCK_HEADERS)
    out: List[SoonInStockRow] = []
    for n, cells in _data_rows(rows, len(SOON_IN_STOCK_HEADERS)):
        c = dict(zip(SOON_IN_STOCK_HEADERS, cells))
        brand = _brand(c["Brand"], n)
        req = _required(c, n, "RMC", "Serial number", "Boutique")
        price = _decimal(c["Ex-Geneva price"], n, "Ex-Geneva price")
        if price is None:
            raise MissingExGenevaPrice(f"Row {n}: missing ex-Geneva price", row=n, column="Ex-Geneva price")
        if is_blank(c["Shipment date"]):
            raise MissingShipmentDate(f"Row {n}: missing shipment date", row=n, column="Shipment date")
        shipment_date = _date(c["Shipment date"], n, "Shipment date", InvalidShipmentDate)
        invoice_date = _date(c["Invoice date"], n, "Invoice date", InvalidInvoiceDate)
        out.append(SoonInStockRow(
            row_number=n,
            brand=brand,
            rmc=req["RMC"],
            number=req["Serial number"],
            store_name=req["Boutique"],
            sold_to_party=cell_str(c["Sold-to party"]),
            invoice_number=cell_str(c["Invoice number"]),
            invoice_date=invoice_date,
            shipment_date=shipment_date,
            ex_geneva_price=price,
            status=_status(c["Status"], n),
            comment=cell_str(c["Comment"]),
        ))
    _unique_serials(out, lambda r: r.number)
    logger.info("Mapped %d soon-in-stock rows", len(out))
    return out
