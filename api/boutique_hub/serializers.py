# boutique_hub/serializers.py
"""
ORM -> wire dicts.

The API keeps the nested catalog shape clients know:

    {"brand", "rmc", "basicInfo", "status",
     "boutiques": [{"storeName", "price", ..., "serialNumbers": [{...}]}]}
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, Optional

from boutique_hub.db_models import (
    Activity, Boutique, Item, ModifiedProduct, ProductModel, SoonInStock,
)
from boutique_hub.db_models_ext import Report, Shipment
from boutique_hub.utils import money


def _iso(val: Optional[date]) -> Optional[str]:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.isoformat(timespec="seconds")
    return val.isoformat()


def _enum(val) -> Optional[str]:
    return val.value if val is not None else None


def serialize_item(item: Item) -> Dict[str, Any]:
    return {
        "number": item.number,
        "status": _enum(item.status),
        "previousStatus": _enum(item.previous_status),
        "location": item.location,
        "reservedFor": item.reserved_for,
        "reservationTime": _iso(item.reservation_time),
        "comment": item.comment,
        "adjustedSize": item.adjusted_size,
        "warrantyConfirmed": item.warranty_confirmed,
        "stockDate": _iso(item.stock_date),
        "origin": item.origin,
        "modified": item.modified,
        "modificationDate": _iso(item.modification_date),
        "modifiedBy": item.modified_by,
        **(item.extra or {}),
    }


def serialize_boutique(b: Boutique) -> Dict[str, Any]:
    return {
        "store": b.store_id,
        "storeName": b.store_name,
        "price": money(b.price),
        "VATpercent": money(b.vat_percent),
        "priceLocal": money(b.price_local),
        "priceHistory": list(b.price_history or []),
        "quantity": b.quantity,
        "serialNumbers": [serialize_item(i) for i in b.items],
    }


def serialize_product_model(m: ProductModel) -> Dict[str, Any]:
    return {
        "id": m.id,
        "brand": m.brand.value,
        "category": m.category.value,
        "rmc": m.rmc,
        "status": m.status.value,
        "basicInfo": dict(m.basic_info or {}),
        "boutiques": [serialize_boutique(b) for b in m.boutiques],
        "updatedAt": _iso(m.updated_at),
    }


def serialize_modified(r: ModifiedProduct) -> Dict[str, Any]:
    return {
        "id": r.id,
        "row": r.row_number,
        "brand": r.brand.value,
        "category": r.category.value,
        "rmc": r.rmc,
        "status": r.status.value,
        "basicInfo": r.basic_info,
        "boutiques": r.boutiques,
        "changes": r.changes,
    }


def serialize_soon_in_stock(r: SoonInStock) -> Dict[str, Any]:
    return {
        "id": r.id,
        "brand": r.product_model.brand.value,
        "rmc": r.product_model.rmc,
        "storeName": r.store.name,
        "number": r.number,
        "status": _enum(r.status),
        "previousStatus": _enum(r.previous_status),
        "location": r.location,
        "reservedFor": r.reserved_for,
        "reservationTime": _iso(r.reservation_time),
        "comment": r.comment,
        "adjustedSize": r.adjusted_size,
        "warrantyConfirmed": r.warranty_confirmed,
        "soldToParty": r.sold_to_party,
        "invoiceNumber": r.invoice_number,
        "invoiceDate": _iso(r.invoice_date),
        "shipmentDate": _iso(r.shipment_date),
        "exGenevaPrice": money(r.ex_geneva_price),
    }


def serialize_activity(a: Activity) -> Dict[str, Any]:
    return {
        "id": a.id,
        "type": a.type,
        "user": a.user,
        "client": a.client_id,
        "comment": a.comment,
        "wishlist": a.wishlist_id,
        "product": a.product_model_id,
        "serialNumber": a.serial_number,
        "report": a.report_id,
        "manuallyAdded": a.manually_added,
        "createdAt": _iso(a.created_at),
    }


def serialize_report(r: Report) -> Dict[str, Any]:
    return {
        "id": r.id,
        "store": r.store.name if r.store is not None else None,
        "ordinal": r.ordinal,
        "invoiceNumber": r.invoice_number,
        "serialNumber": r.serial_number,
        "brand": r.brand.value,
        "rmc": r.rmc,
        "price": money(r.price),
        "priceLocal": money(r.price_local),
        "client": r.client_id,
        "soldBy": r.sold_by,
        "soldAt": _iso(r.sold_at),
        "comment": r.comment,
    }


def serialize_shipment(s: Shipment) -> Dict[str, Any]:
    return {
        "invoiceNumber": s.invoice_number,
        "soldToParty": s.sold_to_party,
        "invoiceDate": _iso(s.invoice_date),
        "shipmentDate": _iso(s.shipment_date),
        "paymentDeadline": _iso(s.payment_deadline),
        "amount": money(s.amount),
        "quantity": s.quantity,
    }
