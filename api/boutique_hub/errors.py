# boutique_hub/errors.py
"""
Typed error taxonomy.

Every failure the inventory core can report has its own class with a stable
machine-readable ``code`` and an HTTP ``status_code``. Callers catch by type;
the API layer turns any ``InventoryError`` into

    {"code": "...", "message": "...", "details": {...}}

with the class's status.

    InventoryError
    +-- NotFound (404), NotAcceptable (406), Unauthorized (401)
    +-- ValidationFailed (400)
        +-- MissingParameters, InvalidValue, InvalidColumnName
        +-- MissingPrice, MissingPurchasePrice, InvalidMaterial
        +-- MissingStatus, MissingLocation
        +-- MissingExGenevaPrice, MissingShipmentDate, InvalidShipmentDate
        +-- InvalidStockDate, InvalidInvoiceDate
        +-- MissingInvoiceNumber, MissingInvoiceDate
        +-- MissingJewelryType, InvalidJewelryType, InvalidStoneType
        +-- InvalidColor, InvalidClarity, InvalidShape, InvalidCut
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class InventoryError(Exception):
    code: str = "INVENTORY_ERROR"
    status_code: int = 500
    default_message: str = "Inventory operation failed"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationFailed(InventoryError):
    code = "VALIDATION_FAILED"
    status_code = 400
    default_message = "Validation failed"


# ============================================================================
# Lookup / state
# ============================================================================

class NotFound(InventoryError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class NotAcceptable(InventoryError):
    code = "NOT_ACCEPTABLE"
    status_code = 406
    default_message = "Operation not acceptable"


class Unauthorized(InventoryError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Missing user"


# ============================================================================
# Request / row validation
# ============================================================================

class MissingParameters(ValidationFailed):
    code = "MISSING_PARAMETERS"
    default_message = "Missing parameters"


class InvalidValue(ValidationFailed):
    code = "INVALID_VALUE"
    default_message = "Invalid value"


class InvalidColumnName(ValidationFailed):
    code = "INVALID_COLUMN_NAME"
    default_message = "Invalid column name"


class MissingPrice(ValidationFailed):
    code = "MISSING_PRICE"
    default_message = "Missing price"


class MissingPurchasePrice(ValidationFailed):
    code = "MISSING_PURCHASE_PRICE"
    default_message = "Missing purchase price"


class InvalidMaterial(ValidationFailed):
    code = "INVALID_MATERIAL"
    default_message = "Invalid material"


class MissingStatus(ValidationFailed):
    code = "MISSING_STATUS"
    default_message = "Missing status"


class MissingLocation(ValidationFailed):
    code = "MISSING_LOCATION"
    default_message = "Missing location"


class MissingExGenevaPrice(ValidationFailed):
    code = "MISSING_EX_GENEVA_PRICE"
    default_message = "Missing ex-Geneva price"


class MissingShipmentDate(ValidationFailed):
    code = "MISSING_SHIPMENT_DATE"
    default_message = "Missing shipment date"


class InvalidShipmentDate(ValidationFailed):
    code = "INVALID_SHIPMENT_DATE"
    default_message = "Invalid shipment date"


class InvalidStockDate(ValidationFailed):
    code = "INVALID_STOCK_DATE"
    default_message = "Invalid stock date"


class InvalidInvoiceDate(ValidationFailed):
    code = "INVALID_INVOICE_DATE"
    default_message = "Invalid invoice date"


class MissingInvoiceNumber(ValidationFailed):
    code = "MISSING_INVOICE_NUMBER"
    default_message = "Missing invoice number"


class MissingInvoiceDate(ValidationFailed):
    code = "MISSING_INVOICE_DATE"
    default_message = "Missing invoice date"


class MissingJewelryType(ValidationFailed):
    code = "MISSING_JEWELRY_TYPE"
    default_message = "Missing jewelry type"


class InvalidJewelryType(ValidationFailed):
    code = "INVALID_JEWELRY_TYPE"
    default_message = "Invalid jewelry type"


class InvalidStoneType(ValidationFailed):
    code = "INVALID_STONE_TYPE"
    default_message = "Invalid stone type"


class InvalidColor(ValidationFailed):
    code = "INVALID_COLOR"
    default_message = "Invalid color"


class InvalidClarity(ValidationFailed):
    code = "INVALID_CLARITY"
    default_message = "Invalid clarity"


class InvalidShape(ValidationFailed):
    code = "INVALID_SHAPE"
    default_message = "Invalid shape"


class InvalidCut(ValidationFailed):
    code = "INVALID_CUT"
    default_message = "Invalid cut"
