from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation, ROUND_CEILING
import math
import re

from .settings import settings

# Canonical area roots under INVENTORY_DATA_ROOT
AREAS = {
    "uploads_catalog": ["uploads", "catalog", "{brand}"],
    "uploads_stock": ["uploads", "stock"],
    "uploads_soon_in_stock": ["uploads", "soon-in-stock"],
    "logs": ["logs"],
}

def utcnow() -> datetime:
    """Naive UTC timestamp (the same shape SQLite and PostgreSQL hand back)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def area_path(area: str, **parts: str) -> Path:
    segs = [p.format(**parts) for p in AREAS[area]]
    return settings.INVENTORY_DATA_ROOT.joinpath(*segs)

def archive_upload(area: str, filename: str, data: bytes, **parts: str) -> Path:
    """Keep a copy of an uploaded file: <area>/<YYYYmmdd_HHMMSS>_<name>."""
    target_dir = area_path(area, **parts)
    target_dir.mkdir(parents=True, exist_ok=True)
    safe = re.sub(r"[^\w.\-]+", "_", Path(filename or "upload.xlsx").name)
    target = target_dir / f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{safe}"
    target.write_bytes(data)
    return target

# ---------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------

def is_blank(val: Any) -> bool:
    if val is None:
        return True
    if isinstance(val, float) and math.isnan(val):
        return True
    return isinstance(val, str) and not val.strip()

def cell_str(val: Any) -> Optional[str]:
    """Trimmed string or None; integral floats lose their '.0' (Excel numbers)."""
    if is_blank(val):
        return None
    if isinstance(val, float) and val.is_integer():
        val = int(val)
    s = str(val).replace("\u00A0", " ").strip()
    return s or None

def to_decimal(val: Any) -> Optional[Decimal]:
    """Parse a money/number cell. Blank -> None, garbage -> ValueError."""
    if is_blank(val):
        return None
    if isinstance(val, Decimal):
        return val
    if isinstance(val, (int, float)):
        return Decimal(str(val))
    s = str(val).replace("\u00A0", "").replace(" ", "").strip()
    if "," in s and "." in s:
        # the right-most separator is the decimal one
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    else:
        s = s.replace(",", ".")
    try:
        return Decimal(s)
    except InvalidOperation:
        raise ValueError(f"not a number: {val!r}")

_DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y", "%d/%m/%Y", "%Y-%m-%d %H:%M:%S", "%d.%m.%Y.")

def to_date(val: Any) -> Optional[date]:
    """Parse a date cell. Blank -> None, garbage -> ValueError."""
    if is_blank(val):
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    # pandas.Timestamp is a datetime subclass; anything else is text
    s = str(val).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"not a date: {val!r}")

def to_datetime(val: Any) -> Optional[datetime]:
    d = to_date(val)
    if d is None:
        return None
    if isinstance(val, datetime):
        return val.replace(tzinfo=None)
    return datetime(d.year, d.month, d.day)

# ---------------------------------------------------------
# Pricing
# ---------------------------------------------------------

def currency_rate(currency: str) -> Optional[Decimal]:
    """Local units per catalog unit, None when the store sells in catalog currency."""
    if not currency or currency.upper() == settings.CATALOG_CURRENCY.upper():
        return None
    rate = settings.CURRENCY_RATES.get(currency.upper())
    if rate is None:
        return None
    return Decimal(str(rate))

def local_price(price: Optional[Decimal], rate: Optional[Decimal]) -> Optional[Decimal]:
    """ceil(price * rate / 1000) * 1000; rounding up to the next thousand is contractual."""
    if price is None:
        return None
    if rate is None:
        return price
    thousands = (Decimal(price) * rate / Decimal(1000)).to_integral_value(rounding=ROUND_CEILING)
    return thousands * Decimal(1000)

def money(val: Optional[Decimal]) -> Optional[float]:
    return float(val) if val is not None else None

def price_history_entry(when: datetime, price: Optional[Decimal], vat: Decimal, price_loc: Optional[Decimal]) -> Dict[str, Any]:
    return {
        "date": when.isoformat(timespec="seconds"),
        "price": money(price),
        "VAT": money(vat),
        "priceLocal": money(price_loc),
    }

def same_price(a: Optional[Decimal], b: Optional[Decimal]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return Decimal(a) == Decimal(b)

# ---------------------------------------------------------
# Paging
# ---------------------------------------------------------

def clamp_page(skip: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    skip = max(0, int(skip or 0))
    limit = int(limit or settings.PAGE_LIMIT)
    limit = max(1, min(limit, settings.PAGE_LIMIT))
    return skip, limit
