from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from dealerdb.database import Base


def _utcnow() -> datetime:
    return datetime.utcnow()


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("ix_customers_user_name", "user_id", "customer_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    guardian_name = Column(String(255), nullable=True)
    mobile1 = Column(String(32), nullable=True)
    mobile2 = Column(String(32), nullable=True)
    gst = Column(String(32), nullable=True)
    address = Column(Text, nullable=True)
    state = Column(String(64), nullable=True)
    district = Column(String(64), nullable=True)
    pincode = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def is_registered(self) -> bool:
        return bool((self.gst or "").strip())
