from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)

from dealerdb.database import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


class DocumentType(str, enum.Enum):
    REGISTERED = "REGISTERED"
    NON_REGISTERED = "NON_REGISTERED"
    JOB_CARD = "JOB_CARD"
    SALES_RETURN = "SALES_RETURN"
    PURCHASE_RETURN = "PURCHASE_RETURN"


DEFAULT_PREFIXES = {
    DocumentType.REGISTERED: "RINV-",
    DocumentType.NON_REGISTERED: "NRINV-",
    DocumentType.JOB_CARD: "JC-",
    DocumentType.SALES_RETURN: "SR-",
    DocumentType.PURCHASE_RETURN: "PR-",
}


class DealerSettings(Base):
    """
    One row per dealer: letterhead details printed on invoices and the
    prefix of every numbered document series.
    """

    __tablename__ = "dealer_settings"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    company_name = Column(String(255), nullable=False, default="Showroom Pro")
    gst_no = Column(String(32), nullable=True)
    pan = Column(String(16), nullable=True)
    mobile = Column(String(32), nullable=True)
    address = Column(Text, nullable=True)
    state = Column(String(64), nullable=True)
    district = Column(String(64), nullable=True)
    pin_code = Column(String(16), nullable=True)
    bank_details = Column(JSON, nullable=True)
    terms_and_conditions = Column(Text, nullable=True)

    registered_invoice_prefix = Column(String(16), nullable=False, default=DEFAULT_PREFIXES[DocumentType.REGISTERED])
    non_registered_invoice_prefix = Column(
        String(16), nullable=False, default=DEFAULT_PREFIXES[DocumentType.NON_REGISTERED]
    )
    job_card_prefix = Column(String(16), nullable=False, default=DEFAULT_PREFIXES[DocumentType.JOB_CARD])
    sales_return_prefix = Column(String(16), nullable=False, default=DEFAULT_PREFIXES[DocumentType.SALES_RETURN])
    purchase_return_prefix = Column(
        String(16), nullable=False, default=DEFAULT_PREFIXES[DocumentType.PURCHASE_RETURN]
    )

    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def prefix_for(self, document_type: DocumentType) -> str:
        column = {
            DocumentType.REGISTERED: "registered_invoice_prefix",
            DocumentType.NON_REGISTERED: "non_registered_invoice_prefix",
            DocumentType.JOB_CARD: "job_card_prefix",
            DocumentType.SALES_RETURN: "sales_return_prefix",
            DocumentType.PURCHASE_RETURN: "purchase_return_prefix",
        }[document_type]
        return getattr(self, column) or DEFAULT_PREFIXES[document_type]


class InvoiceCounter(Base):
    """
    Last issued sequence for (user, financial year, document type).

    Only ever moves forward; incremented inside the transaction that
    saves the numbered document.
    """

    __tablename__ = "invoice_counters"
    __table_args__ = (
        UniqueConstraint("user_id", "financial_year", "document_type", name="uq_invoice_counter_scope"),
        Index("ix_invoice_counters_user_fy", "user_id", "financial_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    financial_year = Column(String(5), nullable=False)
    document_type = Column(
        SAEnum(DocumentType, name="document_type_enum", native_enum=False),
        nullable=False,
    )
    last_sequence = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
