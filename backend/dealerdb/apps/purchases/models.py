from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from dealerdb.database import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


class Purchase(Base):
    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_purchases_idempotency"),
        Index("ix_purchases_user_date", "user_id", "invoice_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    serial_no = Column(String(64), nullable=True)
    invoice_no = Column(String(64), nullable=False)
    invoice_date = Column(Date, nullable=False)
    party_name = Column(String(255), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    idempotency_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
        lazy="selectin",
    )


class PurchaseItem(Base):
    __tablename__ = "purchase_items"
    __table_args__ = (
        Index("ix_purchase_items_user_chassis", "user_id", "chassis_no"),
    )

    id = Column(Integer, primary_key=True, index=True)
    purchase_id = Column(Integer, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    chassis_no = Column(String(64), nullable=False)
    engine_no = Column(String(64), nullable=False, index=True)
    model_name = Column(String(255), nullable=False)
    colour = Column(String(64), nullable=False, default="N/A")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    hsn = Column(String(16), nullable=True)
    gst = Column(Numeric(5, 2), nullable=True)
    category = Column(String(64), nullable=True)

    purchase = relationship("Purchase", back_populates="items")


class PurchaseReturn(Base):
    __tablename__ = "purchase_returns"
    __table_args__ = (
        UniqueConstraint("user_id", "return_invoice_no", name="uq_purchase_returns_number"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_purchase_returns_idempotency"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    return_invoice_no = Column(String(64), nullable=False)
    return_date = Column(Date, nullable=False)
    purchase_id = Column(Integer, ForeignKey("purchases.id", ondelete="SET NULL"), nullable=True, index=True)
    party_name = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    idempotency_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    items = relationship(
        "PurchaseReturnItem",
        back_populates="purchase_return",
        cascade="all, delete-orphan",
        order_by="PurchaseReturnItem.id",
        lazy="selectin",
    )
    purchase = relationship("Purchase", lazy="joined")


class PurchaseReturnItem(Base):
    __tablename__ = "purchase_return_items"
    __table_args__ = (
        Index("ix_purchase_return_items_user_chassis", "user_id", "chassis_no"),
    )

    id = Column(Integer, primary_key=True, index=True)
    purchase_return_id = Column(
        Integer, ForeignKey("purchase_returns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(36), nullable=False, index=True)
    chassis_no = Column(String(64), nullable=False)
    engine_no = Column(String(64), nullable=False)
    model_name = Column(String(255), nullable=False)
    colour = Column(String(64), nullable=False, default="N/A")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    hsn = Column(String(16), nullable=True)
    gst = Column(Numeric(5, 2), nullable=True)
    category = Column(String(64), nullable=True)
    purchase_date = Column(Date, nullable=True)
    purchase_id = Column(Integer, nullable=True)

    purchase_return = relationship("PurchaseReturn", back_populates="items")
