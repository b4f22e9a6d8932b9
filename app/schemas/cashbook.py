"""Pydantic schemas for cashbook entries and summaries."""

from __future__ import annotations

from datetime import date as date_type
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

EntryType = Literal["DEBIT", "CREDIT"]


def _clean_category(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    if not v:
        raise ValueError("Category must not be empty")
    return v


class CashbookEntryCreate(BaseModel):
    date: date_type
    type: EntryType
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    category: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    reference_type: str | None = Field(default=None, max_length=50)
    reference_id: str | None = Field(default=None, max_length=64)

    @field_validator("category")
    @classmethod
    def _category(cls, v: str) -> str:
        return _clean_category(v)


class CashbookEntryUpdate(BaseModel):
    date: date_type | None = None
    type: EntryType | None = None
    amount: Decimal | None = Field(default=None, gt=0, max_digits=14, decimal_places=2)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    reference_type: str | None = Field(default=None, max_length=50)
    reference_id: str | None = Field(default=None, max_length=64)

    @field_validator("category")
    @classmethod
    def _category(cls, v: str | None) -> str | None:
        return _clean_category(v)


class CashbookEntryRead(BaseModel):
    id: int
    date: date_type
    type: str
    amount: float
    category: str
    description: str | None
    reference_type: str | None
    reference_id: str | None
    created_by: str | None
    created_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class CashbookEntryWithBalance(CashbookEntryRead):
    running_balance: float


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CashbookListResponse(BaseModel):
    entries: list[CashbookEntryWithBalance]
    pagination: Pagination


class CategoryTotal(BaseModel):
    category: str
    total: float
    count: int


class CashbookSummaryResponse(BaseModel):
    period: str
    period_name: str
    start_date: date_type
    end_date: date_type
    total_credit: float
    total_debit: float
    net_amount: float
    entry_count: int
    debit_categories: list[CategoryTotal]


class DeleteResponse(BaseModel):
    success: bool
    message: str
