from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from dealerdb.apps.stock.schemas import UnitAttributes
from dealerdb.utils.identifiers import normalize_vehicle_number


class PurchaseItemIn(UnitAttributes):
    pass


class PurchaseItemRead(UnitAttributes):
    id: int

    class Config:
        from_attributes = True


class PurchaseBase(BaseModel):
    serial_no: Optional[str] = Field(default=None, max_length=64)
    invoice_no: str = Field(..., min_length=1, max_length=64)
    invoice_date: date
    party_name: str = Field(..., min_length=1, max_length=255)


class PurchaseCreate(PurchaseBase):
    items: List[PurchaseItemIn] = Field(..., min_length=1)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)


class PurchaseUpdate(PurchaseBase):
    items: List[PurchaseItemIn] = Field(..., min_length=1)


class PurchaseRead(PurchaseBase):
    id: int
    total_amount: Decimal
    items: List[PurchaseItemRead]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PurchasePage(BaseModel):
    items: List[PurchaseRead]
    total: int


class PurchaseItemMatch(PurchaseItemRead):
    in_stock: bool


class PurchaseForReturn(BaseModel):
    id: int
    invoice_no: str
    invoice_date: date
    party_name: str
    items: List[PurchaseItemMatch]


class PurchaseReturnCreate(BaseModel):
    purchase_id: int
    return_date: date
    chassis_nos: List[str] = Field(..., min_length=1)
    reason: Optional[str] = None
    return_invoice_no: Optional[str] = Field(default=None, max_length=64)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)

    @field_validator("chassis_nos")
    @classmethod
    def _normalize(cls, values: List[str]) -> List[str]:
        cleaned = [normalize_vehicle_number(v) for v in values]
        if not all(cleaned):
            raise ValueError("chassis numbers must not be blank")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("chassis numbers must be unique")
        return cleaned


class PurchaseReturnItemRead(UnitAttributes):
    id: int
    purchase_id: Optional[int] = None

    class Config:
        from_attributes = True


class PurchaseReturnRead(BaseModel):
    id: int
    return_invoice_no: str
    return_date: date
    purchase_id: Optional[int] = None
    party_name: Optional[str] = None
    reason: Optional[str] = None
    total_amount: Decimal
    items: List[PurchaseReturnItemRead]
    created_at: datetime

    class Config:
        from_attributes = True


class PurchaseReturnPage(BaseModel):
    items: List[PurchaseReturnRead]
    total: int
