"""
Cashbook ledger entries: money in (CREDIT) and out (DEBIT).
"""

from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String

from app.db.base import Base


class CashbookEntry(Base):
    __tablename__ = "cashbook_entries"
    __table_args__ = (Index("ix_cashbook_date_type", "date", "type"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    date: date_type = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    type: str = Column(String(10), nullable=False)  # type: ignore[assignment]  # DEBIT | CREDIT
    amount: Decimal = Column(Numeric(14, 2), nullable=False)  # type: ignore[assignment]
    category: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    reference_type: str | None = Column(String(50), nullable=True)  # type: ignore[assignment]
    reference_id: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    created_by: str | None = Column(  # type: ignore[assignment]
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
