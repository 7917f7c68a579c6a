from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from . import models


class BankDetails(BaseModel):
    account_holder_name: str = ""
    account_number: str = ""
    bank_name: str = ""
    ifsc_code: str = ""


class DealerSettingsUpdate(BaseModel):
    company_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    gst_no: Optional[str] = None
    pan: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pin_code: Optional[str] = None
    bank_details: Optional[BankDetails] = None
    terms_and_conditions: Optional[str] = None
    registered_invoice_prefix: Optional[str] = Field(default=None, max_length=16)
    non_registered_invoice_prefix: Optional[str] = Field(default=None, max_length=16)
    job_card_prefix: Optional[str] = Field(default=None, max_length=16)
    sales_return_prefix: Optional[str] = Field(default=None, max_length=16)
    purchase_return_prefix: Optional[str] = Field(default=None, max_length=16)


class DealerSettingsRead(BaseModel):
    user_id: str
    company_name: str
    gst_no: Optional[str] = None
    pan: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pin_code: Optional[str] = None
    bank_details: Optional[BankDetails] = None
    terms_and_conditions: Optional[str] = None
    registered_invoice_prefix: str
    non_registered_invoice_prefix: str
    job_card_prefix: str
    sales_return_prefix: str
    purchase_return_prefix: str
    updated_at: datetime

    class Config:
        from_attributes = True


class NumberPreview(BaseModel):
    document_type: models.DocumentType
    financial_year: str
    sequence: int
    number: str


class CounterRead(BaseModel):
    financial_year: str
    document_type: models.DocumentType
    last_sequence: int

    class Config:
        from_attributes = True


class FinancialYearRead(BaseModel):
    financial_year: str
    start: date
    end: date


class FinancialYearList(BaseModel):
    current: str
    years: List[FinancialYearRead]
