from __future__ import annotations

import enum
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
)
from sqlalchemy.orm import relationship

from dealerdb.database import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


class JobCardItemKind(str, enum.Enum):
    PART = "PART"
    LABOUR = "LABOUR"


class WorkshopPart(Base):
    __tablename__ = "workshop_parts"
    __table_args__ = (
        UniqueConstraint("user_id", "part_no", name="uq_workshop_parts_number"),
        Index("ix_workshop_parts_user_name", "user_id", "part_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    part_no = Column(String(64), nullable=False)
    part_name = Column(String(255), nullable=False)
    hsn_code = Column(String(16), nullable=True)
    uom = Column(String(16), nullable=False, default="NOS")
    category = Column(String(64), nullable=True)
    purchase_rate = Column(Numeric(12, 2), nullable=False, default=0)
    sale_rate = Column(Numeric(12, 2), nullable=False, default=0)
    gst = Column(Numeric(5, 2), nullable=False, default=0)
    quantity = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class JobCard(Base):
    __tablename__ = "job_cards"
    __table_args__ = (
        UniqueConstraint("user_id", "invoice_no", name="uq_job_cards_number"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_job_cards_idempotency"),
        Index("ix_job_cards_user_date", "user_id", "invoice_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_no = Column(String(64), nullable=False)
    financial_year = Column(String(5), nullable=False, index=True)
    invoice_date = Column(Date, nullable=False)

    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_mobile = Column(String(32), nullable=True)
    customer_address = Column(Text, nullable=True)
    customer_state = Column(String(64), nullable=True)

    reg_no = Column(String(32), nullable=False, index=True)
    frame_no = Column(String(64), nullable=True)
    model = Column(String(255), nullable=True)
    kms = Column(Integer, nullable=True)
    job_type = Column(String(64), nullable=False, default="Paid Service")
    mechanic = Column(String(255), nullable=True)
    next_due_date = Column(Date, nullable=True)
    # Work the customer declined; printed on the card, never billed.
    denied_items = Column(JSON, nullable=False, default=list)

    is_inter_state = Column(Boolean, nullable=False, default=False)
    parts_total = Column(Numeric(14, 2), nullable=False, default=0)
    labour_total = Column(Numeric(14, 2), nullable=False, default=0)
    taxable_total = Column(Numeric(14, 2), nullable=False, default=0)
    cgst_total = Column(Numeric(14, 2), nullable=False, default=0)
    sgst_total = Column(Numeric(14, 2), nullable=False, default=0)
    igst_total = Column(Numeric(14, 2), nullable=False, default=0)
    round_off = Column(Numeric(6, 2), nullable=False, default=0)
    grand_total = Column(Numeric(14, 2), nullable=False, default=0)

    idempotency_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "JobCardItem",
        back_populates="job_card",
        cascade="all, delete-orphan",
        order_by="JobCardItem.id",
        lazy="selectin",
    )


class JobCardItem(Base):
    __tablename__ = "job_card_items"

    id = Column(Integer, primary_key=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_cards.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)

    kind = Column(
        SAEnum(JobCardItemKind, name="job_card_item_kind_enum", native_enum=False),
        nullable=False,
    )
    # Set on PART lines only; the ledger row the quantity was drawn from.
    part_no = Column(String(64), nullable=True, index=True)
    item_name = Column(String(255), nullable=False)
    hsn_code = Column(String(16), nullable=True)
    uom = Column(String(16), nullable=True)
    quantity = Column(Numeric(12, 2), nullable=False, default=1)
    rate = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    gst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    taxable_value = Column(Numeric(12, 2), nullable=False, default=0)
    cgst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    sgst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    igst_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    job_card = relationship("JobCard", back_populates="items")
