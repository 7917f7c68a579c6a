from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class CustomerBase(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=255)
    guardian_name: Optional[str] = None
    mobile1: Optional[str] = None
    mobile2: Optional[str] = None
    gst: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    guardian_name: Optional[str] = None
    mobile1: Optional[str] = None
    mobile2: Optional[str] = None
    gst: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    district: Optional[str] = None
    pincode: Optional[str] = None


class CustomerRead(CustomerBase):
    id: int
    user_id: str
    is_registered: bool
    created_at: datetime

    class Config:
        from_attributes = True


class CustomerPage(BaseModel):
    items: List[CustomerRead]
    total: int
