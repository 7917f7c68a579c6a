from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from dealerdb.apps.numbering.models import DocumentType
from dealerdb.apps.stock.schemas import UnitAttributes
from dealerdb.utils.identifiers import normalize_vehicle_number


def _normalize_chassis_list(values: List[str]) -> List[str]:
    cleaned = [normalize_vehicle_number(v) for v in values]
    if not all(cleaned):
        raise ValueError("chassis numbers must not be blank")
    if len(set(cleaned)) != len(cleaned):
        raise ValueError("chassis numbers must be unique")
    return cleaned


class InvoiceItemIn(BaseModel):
    chassis_no: str = Field(..., min_length=1, max_length=64)
    # Defaults to the stock price when omitted.
    sale_price: Optional[Decimal] = Field(default=None, ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("chassis_no")
    @classmethod
    def _normalize(cls, value: str) -> str:
        value = normalize_vehicle_number(value)
        if not value:
            raise ValueError("must not be blank")
        return value


class CustomerDetails(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    guardian_name: Optional[str] = None
    mobile: Optional[str] = None
    gst: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None


class VehicleInvoiceBase(BaseModel):
    invoice_date: date
    customer_id: Optional[int] = None
    customer: Optional[CustomerDetails] = None
    items: List[InvoiceItemIn] = Field(..., min_length=1)
    extra_charges: Dict[str, Decimal] = Field(default_factory=dict)
    remarks: Optional[str] = None


class VehicleInvoiceCreate(VehicleInvoiceBase):
    invoice_no: Optional[str] = Field(default=None, max_length=64)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)


class VehicleInvoiceUpdate(VehicleInvoiceBase):
    pass


class VehicleInvoiceItemRead(UnitAttributes):
    id: int
    purchase_id: Optional[int] = None
    sale_price: Decimal
    discount: Decimal
    taxable_value: Decimal
    cgst_rate: Decimal
    cgst_amount: Decimal
    sgst_rate: Decimal
    sgst_amount: Decimal
    igst_rate: Decimal
    igst_amount: Decimal
    total: Decimal
    is_returned: bool

    class Config:
        from_attributes = True


class VehicleInvoiceRead(BaseModel):
    id: int
    invoice_no: str
    document_type: DocumentType
    financial_year: str
    invoice_date: date
    customer_id: Optional[int] = None
    customer_name: str
    guardian_name: Optional[str] = None
    mobile: Optional[str] = None
    customer_gst: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None
    is_inter_state: bool
    extra_charges: Dict[str, Decimal]
    items_total: Decimal
    taxable_total: Decimal
    cgst_total: Decimal
    sgst_total: Decimal
    igst_total: Decimal
    extra_charges_total: Decimal
    round_off: Decimal
    grand_total: Decimal
    remarks: Optional[str] = None
    items: List[VehicleInvoiceItemRead]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VehicleInvoicePage(BaseModel):
    items: List[VehicleInvoiceRead]
    total: int


class InvoiceForReturn(BaseModel):
    id: int
    invoice_no: str
    invoice_date: date
    customer_name: str
    items: List[VehicleInvoiceItemRead]


class SalesReturnCreate(BaseModel):
    invoice_id: int
    return_date: date
    chassis_nos: List[str] = Field(..., min_length=1)
    reason: Optional[str] = None
    return_invoice_no: Optional[str] = Field(default=None, max_length=64)
    idempotency_key: Optional[str] = Field(default=None, max_length=128)

    @field_validator("chassis_nos")
    @classmethod
    def _normalize(cls, values: List[str]) -> List[str]:
        return _normalize_chassis_list(values)


class SalesReturnItemRead(BaseModel):
    id: int
    invoice_item_id: int
    chassis_no: str
    engine_no: str
    model_name: str
    colour: str
    price: Decimal

    class Config:
        from_attributes = True


class SalesReturnRead(BaseModel):
    id: int
    return_invoice_no: str
    return_date: date
    invoice_id: int
    customer_name: Optional[str] = None
    reason: Optional[str] = None
    total_refund_amount: Decimal
    items: List[SalesReturnItemRead]
    created_at: datetime

    class Config:
        from_attributes = True


class SalesReturnPage(BaseModel):
    items: List[SalesReturnRead]
    total: int
