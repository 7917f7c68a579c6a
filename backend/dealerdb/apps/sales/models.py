from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from dealerdb.database import Base
from dealerdb.apps.numbering.models import DocumentType


def _utcnow() -> datetime:
    return datetime.utcnow()


class VehicleInvoice(Base):
    __tablename__ = "vehicle_invoices"
    __table_args__ = (
        UniqueConstraint("user_id", "invoice_no", name="uq_vehicle_invoices_number"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_vehicle_invoices_idempotency"),
        Index("ix_vehicle_invoices_user_date", "user_id", "invoice_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_no = Column(String(64), nullable=False)
    document_type = Column(
        SAEnum(DocumentType, name="document_type_enum", native_enum=False),
        nullable=False,
    )
    financial_year = Column(String(5), nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)

    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    # Customer details as printed on the invoice.
    customer_name = Column(String(255), nullable=False)
    guardian_name = Column(String(255), nullable=True)
    mobile = Column(String(32), nullable=True)
    customer_gst = Column(String(32), nullable=True)
    address = Column(Text, nullable=True)
    state = Column(String(64), nullable=True)
    district = Column(String(64), nullable=True)
    pincode = Column(String(16), nullable=True)

    is_inter_state = Column(Boolean, nullable=False, default=False)
    extra_charges = Column(JSON, nullable=False, default=dict)
    items_total = Column(Numeric(14, 2), nullable=False, default=0)
    taxable_total = Column(Numeric(14, 2), nullable=False, default=0)
    cgst_total = Column(Numeric(14, 2), nullable=False, default=0)
    sgst_total = Column(Numeric(14, 2), nullable=False, default=0)
    igst_total = Column(Numeric(14, 2), nullable=False, default=0)
    extra_charges_total = Column(Numeric(14, 2), nullable=False, default=0)
    round_off = Column(Numeric(6, 2), nullable=False, default=0)
    grand_total = Column(Numeric(14, 2), nullable=False, default=0)
    remarks = Column(Text, nullable=True)

    idempotency_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "VehicleInvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="VehicleInvoiceItem.id",
        lazy="selectin",
    )


class VehicleInvoiceItem(Base):
    __tablename__ = "vehicle_invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("vehicle_invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)

    chassis_no = Column(String(64), nullable=False)
    engine_no = Column(String(64), nullable=False, index=True)
    model_name = Column(String(255), nullable=False)
    colour = Column(String(64), nullable=False, default="N/A")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    hsn = Column(String(16), nullable=True)
    gst = Column(Numeric(5, 2), nullable=True)
    category = Column(String(64), nullable=True)
    purchase_date = Column(Date, nullable=True)
    purchase_id = Column(Integer, nullable=True)

    # Price charged on this invoice; `price` stays the stock price restored on release.
    sale_price = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    taxable_value = Column(Numeric(12, 2), nullable=False, default=0)
    cgst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    cgst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    sgst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    sgst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    igst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    igst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    is_returned = Column(Boolean, nullable=False, default=False)

    invoice = relationship("VehicleInvoice", back_populates="items")

    __table_args__ = (
        Index("ix_vehicle_invoice_items_user_chassis", "user_id", "chassis_no"),
        # A chassis can sit on at most one live invoice line.
        Index(
            "uq_vehicle_invoice_items_active_chassis",
            "user_id",
            "chassis_no",
            unique=True,
            postgresql_where=text("is_returned = false"),
            sqlite_where=text("is_returned = false"),
        ),
    )


class SalesReturn(Base):
    __tablename__ = "sales_returns"
    __table_args__ = (
        UniqueConstraint("user_id", "return_invoice_no", name="uq_sales_returns_number"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_sales_returns_idempotency"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    return_invoice_no = Column(String(64), nullable=False)
    return_date = Column(Date, nullable=False)
    invoice_id = Column(Integer, ForeignKey("vehicle_invoices.id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    total_refund_amount = Column(Numeric(14, 2), nullable=False, default=0)
    idempotency_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    items = relationship(
        "SalesReturnItem",
        back_populates="sales_return",
        cascade="all, delete-orphan",
        order_by="SalesReturnItem.id",
        lazy="selectin",
    )
    invoice = relationship("VehicleInvoice", lazy="joined")


class SalesReturnItem(Base):
    __tablename__ = "sales_return_items"
    __table_args__ = (
        Index("ix_sales_return_items_user_chassis", "user_id", "chassis_no"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sales_return_id = Column(Integer, ForeignKey("sales_returns.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_item_id = Column(Integer, ForeignKey("vehicle_invoice_items.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    chassis_no = Column(String(64), nullable=False)
    engine_no = Column(String(64), nullable=False)
    model_name = Column(String(255), nullable=False)
    colour = Column(String(64), nullable=False, default="N/A")
    price = Column(Numeric(12, 2), nullable=False, default=0)

    sales_return = relationship("SalesReturn", back_populates="items")
    invoice_item = relationship("VehicleInvoiceItem", lazy="joined")
