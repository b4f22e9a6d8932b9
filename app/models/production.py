"""
Production list: one row per buyer programme on the floor.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text

from app.db.base import Base


class ProductionItem(Base):
    __tablename__ = "production_items"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    program_code: str = Column(String(50), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    buyer: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    item: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    quantity: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    price: Decimal = Column(Numeric(12, 2), nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20), nullable=False, default="PENDING", server_default="PENDING", index=True
    )
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
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
