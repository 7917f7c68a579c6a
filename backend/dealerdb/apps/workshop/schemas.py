from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .models import JobCardItemKind


def normalize_part_no(value: Optional[str]) -> str:
    return "".join((value or "").split()).upper()


class WorkshopPartIn(BaseModel):
    part_no: str = Field(..., min_length=1, max_length=64)
    part_name: str = Field(..., min_length=1, max_length=255)
    hsn_code: Optional[str] = Field(default=None, max_length=16)
    uom: str = Field(default="NOS", max_length=16)
    category: Optional[str] = Field(default=None, max_length=64)
    purchase_rate: Decimal = Field(default=Decimal("0"), ge=0)
    sale_rate: Decimal = Field(default=Decimal("0"), ge=0)
    gst: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    quantity: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("part_no")
    @classmethod
    def _normalize(cls, value: str) -> str:
        value = normalize_part_no(value)
        if not value:
            raise ValueError("must not be blank")
        return value


class WorkshopPartRead(WorkshopPartIn):
    id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WorkshopPartPage(BaseModel):
    items: List[WorkshopPartRead]
    total: int


class JobCardItemIn(BaseModel):
    # Required on parts; rate, name, HSN and GST default from the ledger row.
    part_no: Optional[str] = Field(default=None, max_length=64)
    item_name: Optional[str] = Field(default=None, max_length=255)
    hsn_code: Optional[str] = Field(default=None, max_length=16)
    uom: Optional[str] = Field(default=None, max_length=16)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    rate: Optional[Decimal] = Field(default=None, ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    gst_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)

    @field_validator("part_no")
    @classmethod
    def _normalize(cls, value: Optional[str]) -> Optional[str]:
        return normalize_part_no(value) or None


class JobCardBase(BaseModel):
    invoice_date: date
    customer_id: Optional[int] = None
    customer_name: Optional[str] = Field(default=None, max_length=255)
    customer_mobile: Optional[str] = None
    customer_address: Optional[str] = None
    customer_state: Optional[str] = None
    reg_no: str = Field(..., min_length=1, max_length=32)
    frame_no: Optional[str] = Field(default=None, max_length=64)
    model: Optional[str] = Field(default=None, max_length=255)
    kms: Optional[int] = Field(default=None, ge=0)
    job_type: str = Field(default="Paid Service", max_length=64)
    mechanic: Optional[str] = None
    # Defaults to 90 days after the job when omitted.
    next_due_date: Optional[date] = None
    parts_items: List[JobCardItemIn] = Field(default_factory=list)
    labour_items: List[JobCardItemIn] = Field(default_factory=list)
    denied_items: List[str] = Field(default_factory=list)

    @field_validator("reg_no")
    @classmethod
    def _normalize_reg_no(cls, value: str) -> str:
        value = "".join(value.split()).upper()
        if not value:
            raise ValueError("must not be blank")
        return value


class JobCardCreate(JobCardBase):
    invoice_no: Optional[str] = Field(default=None, max_length=64)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)


class JobCardUpdate(JobCardBase):
    pass


class JobCardItemRead(BaseModel):
    id: int
    kind: JobCardItemKind
    part_no: Optional[str] = None
    item_name: str
    hsn_code: Optional[str] = None
    uom: Optional[str] = None
    quantity: Decimal
    rate: Decimal
    discount: Decimal
    gst_rate: Decimal
    taxable_value: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    total: Decimal

    class Config:
        from_attributes = True


class JobCardRead(BaseModel):
    id: int
    invoice_no: str
    financial_year: str
    invoice_date: date
    customer_id: Optional[int] = None
    customer_name: str
    customer_mobile: Optional[str] = None
    customer_address: Optional[str] = None
    customer_state: Optional[str] = None
    reg_no: str
    frame_no: Optional[str] = None
    model: Optional[str] = None
    kms: Optional[int] = None
    job_type: str
    mechanic: Optional[str] = None
    next_due_date: Optional[date] = None
    denied_items: List[str]
    is_inter_state: bool
    parts_total: Decimal
    labour_total: Decimal
    taxable_total: Decimal
    cgst_total: Decimal
    sgst_total: Decimal
    igst_total: Decimal
    round_off: Decimal
    grand_total: Decimal
    items: List[JobCardItemRead]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class JobCardPage(BaseModel):
    items: List[JobCardRead]
    total: int
