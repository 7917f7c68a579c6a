from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from dealerdb.utils.identifiers import normalize_vehicle_number

from .models import StockSourceEnum


class UnitAttributes(BaseModel):
    """Attributes shared by stock rows, purchase lines and invoice lines."""

    chassis_no: str = Field(..., min_length=1, max_length=64)
    engine_no: str = Field(..., min_length=1, max_length=64)
    model_name: str = Field(..., min_length=1, max_length=255)
    colour: Optional[str] = Field(default="N/A", max_length=64)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    hsn: Optional[str] = Field(default=None, max_length=16)
    gst: Optional[Decimal] = Field(default=None, ge=0, le=100)
    category: Optional[str] = Field(default=None, max_length=64)
    purchase_date: Optional[date] = None

    @field_validator("chassis_no", "engine_no")
    @classmethod
    def _normalize_number(cls, value: str) -> str:
        value = normalize_vehicle_number(value)
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("colour")
    @classmethod
    def _default_colour(cls, value: Optional[str]) -> str:
        return (value or "").strip() or "N/A"


class StockUnitCreate(UnitAttributes):
    pass


class StockUnitRead(UnitAttributes):
    id: int
    purchase_id: Optional[int] = None
    source: StockSourceEnum
    created_at: datetime

    class Config:
        from_attributes = True


class StockPage(BaseModel):
    items: List[StockUnitRead]
    total: int


class StockCheck(BaseModel):
    exists: bool
    field: Optional[str] = None
    message: Optional[str] = None
