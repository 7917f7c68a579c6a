from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel

from dealerdb.apps.numbering.models import DocumentType


class StockSummaryRow(BaseModel):
    model_name: str
    colour: str
    count: int


class ModelTotal(BaseModel):
    model_name: str
    count: int


class StockSummary(BaseModel):
    rows: List[StockSummaryRow]
    models: List[ModelTotal]
    grand_total: int


class DocumentRef(BaseModel):
    id: int
    number: str
    date: date
    party: Optional[str] = None
    is_returned: bool = False


class VehicleTrack(BaseModel):
    chassis_no: str
    engine_no: Optional[str] = None
    model_name: Optional[str] = None
    colour: Optional[str] = None
    in_stock: bool
    purchases: List[DocumentRef]
    purchase_returns: List[DocumentRef]
    invoices: List[DocumentRef]
    sales_returns: List[DocumentRef]


class ConsistencyIssue(BaseModel):
    chassis_no: str
    kind: str
    in_stock: bool
    invoice_nos: List[str]


class SalesRegisterRow(BaseModel):
    id: int
    invoice_no: str
    invoice_date: date
    document_type: DocumentType
    customer_name: str
    customer_gst: Optional[str] = None
    taxable_total: Decimal
    cgst_total: Decimal
    sgst_total: Decimal
    igst_total: Decimal
    grand_total: Decimal

    class Config:
        from_attributes = True


class RegisterTotals(BaseModel):
    count: int = 0
    taxable_total: Decimal = Decimal("0")
    tax_total: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")


class SalesRegister(BaseModel):
    financial_year: str
    start_date: date
    end_date: date
    invoices: List[SalesRegisterRow]
    totals_by_type: Dict[str, RegisterTotals]
    totals: RegisterTotals
