from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from boutique_hub.db_models import Brand, ItemStatus


class ItemPatch(BaseModel):
    """Partial edit of an item or pre-stock record; only sent fields apply."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    status: Optional[ItemStatus] = None
    location: Optional[str] = None
    comment: Optional[str] = None
    adjusted_size: Optional[str] = Field(None, alias="adjustedSize")
    reserved_for: Optional[int] = Field(None, alias="reservedFor")
    reservation_time: Optional[datetime] = Field(None, alias="reservationTime")
    warranty_confirmed: Optional[bool] = Field(None, alias="warrantyConfirmed")

    def to_patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, by_alias=False)


class ChangeStoreIn(BaseModel):
    store: str


class ChangeRmcIn(BaseModel):
    rmc: str


class ExchangePartsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    brand: Brand
    rmc: str
    store: str
    dial: Optional[str] = None
    bracelet: Optional[str] = None
    other_store: Optional[str] = Field(None, alias="otherStore")
    serial_number: Optional[str] = Field(None, alias="serialNumber")
    save: bool = False


class SellIn(BaseModel):
    price: Optional[Decimal] = None
    comment: Optional[str] = None


