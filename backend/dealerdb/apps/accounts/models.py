# backend/dealerdb/apps/accounts/models.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, String, UniqueConstraint

from dealerdb.database import Base
from dealerdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.utcnow()


class User(Base):
    """
    Dealer account.

    One user owns one showroom's data: stock, purchases, invoices,
    customers, settings and numbering counters are all keyed by `users.id`.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("idx_users_active", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)
    is_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email}>"
