"""Pydantic schemas for production list items."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.cashbook import Pagination

ProductionStatus = Literal["PENDING", "RUNNING", "COMPLETE", "CANCELLED"]


class ProductionItemBase(BaseModel):
    program_code: str = Field(min_length=1, max_length=50)
    buyer: str = Field(min_length=1, max_length=200)
    item: str = Field(min_length=1, max_length=200)
    quantity: int = Field(gt=0)
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("program_code", "buyer", "item")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Must not be empty")
        return v


class ProductionItemCreate(ProductionItemBase):
    status: ProductionStatus = "PENDING"


class ProductionItemUpdate(ProductionItemBase):
    """Full replacement; status keeps its current value when omitted."""

    status: ProductionStatus | None = None


class ProductionItemRead(BaseModel):
    id: int
    program_code: str
    buyer: str
    item: str
    quantity: int
    price: float
    status: str
    notes: str | None
    created_by: str | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class ProductionListResponse(BaseModel):
    items: list[ProductionItemRead]
    pagination: Pagination
