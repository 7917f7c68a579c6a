from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from dealerdb.database import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


class StockSourceEnum(str, enum.Enum):
    PURCHASE = "PURCHASE"
    INVOICE_RELEASE = "INVOICE_RELEASE"
    SALES_RETURN = "SALES_RETURN"
    PURCHASE_RETURN_REVERSAL = "PURCHASE_RETURN_REVERSAL"
    MANUAL = "MANUAL"


class StockUnit(Base):
    __tablename__ = "stock_units"
    __table_args__ = (
        UniqueConstraint("user_id", "chassis_no", name="uq_stock_units_chassis"),
        UniqueConstraint("user_id", "engine_no", name="uq_stock_units_engine"),
        Index("ix_stock_units_user_model", "user_id", "model_name", "colour"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    chassis_no = Column(String(64), nullable=False, index=True)
    engine_no = Column(String(64), nullable=False, index=True)
    model_name = Column(String(255), nullable=False)
    colour = Column(String(64), nullable=False, default="N/A")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    hsn = Column(String(16), nullable=True)
    gst = Column(Numeric(5, 2), nullable=True)
    category = Column(String(64), nullable=True)
    purchase_date = Column(Date, nullable=True)

    # Purchase the unit arrived on; plain integer so restored units keep it
    # after the purchase row itself is edited.
    purchase_id = Column(Integer, nullable=True, index=True)
    source = Column(
        SAEnum(StockSourceEnum, name="stock_source_enum", native_enum=False),
        nullable=False,
        default=StockSourceEnum.PURCHASE,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<StockUnit chassis={self.chassis_no} model={self.model_name}>"
