"""
Cashbook ledger endpoints.

- GET operations require READ_CASHBOOK.
- POST / PUT / DELETE require the matching write permission and are refused
  for read-only roles whatever their grants.
"""

from __future__ import annotations

import calendar
import logging
import math
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_permissions, require_write_access
from app.core.rbac import PermissionType
from app.models.cashbook import CashbookEntry
from app.schemas.cashbook import (CashbookEntryCreate, CashbookEntryRead,
                                  CashbookEntryUpdate, CashbookEntryWithBalance,
                                  CashbookListResponse, CashbookSummaryResponse,
                                  CategoryTotal, DeleteResponse, Pagination)
from app.schemas.user import UserWithPermissions

router = APIRouter(prefix="/cashbook", tags=["cashbook"])
logger = logging.getLogger(__name__)

Period = Literal["today", "current_month", "last_month", "all_time"]


# ── Helpers ─────────────────────────────────────────────────────────
def _period_bounds(period: str, today: date) -> tuple[date, date, str]:
    """Inclusive date range and display name for a summary period."""
    if period == "today":
        return today, today, today.strftime("%b %d, %Y")
    if period == "last_month":
        last_day_prev = today.replace(day=1) - timedelta(days=1)
        start = last_day_prev.replace(day=1)
        return start, last_day_prev, start.strftime("%B %Y")
    if period == "all_time":
        return date(2020, 1, 1), today, "All Time"
    start = today.replace(day=1)
    end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    return start, end, today.strftime("%B %Y")


def _with_running_balance(entries: list[CashbookEntry]) -> list[CashbookEntryWithBalance]:
    """Balance accumulates oldest first; the list is returned newest first."""
    balance = 0.0
    rows: list[CashbookEntryWithBalance] = []
    for entry in sorted(entries, key=lambda e: (e.date, e.id)):
        amount = float(entry.amount)
        balance += amount if entry.type == "CREDIT" else -amount
        rows.append(
            CashbookEntryWithBalance(
                **CashbookEntryRead.model_validate(entry).model_dump(),
                running_balance=round(balance, 2),
            )
        )
    rows.reverse()
    return rows


async def _get_entry(db: AsyncSession, entry_id: int) -> CashbookEntry:
    entry = await db.get(CashbookEntry, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Cashbook entry not found")
    return entry


# ── Read ────────────────────────────────────────────────────────────
@router.get("", response_model=CashbookListResponse)
async def list_entries(
    entry_date: date | None = Query(None, alias="date"),
    entry_type: Literal["DEBIT", "CREDIT"] | None = Query(None, alias="type"),
    category: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.READ_CASHBOOK)),
) -> CashbookListResponse:
    """List entries newest first, with filters, pagination and running balance."""
    filters = []
    if entry_date is not None:
        filters.append(CashbookEntry.date == entry_date)
    if entry_type is not None:
        filters.append(CashbookEntry.type == entry_type)
    if category:
        filters.append(func.lower(CashbookEntry.category).contains(category.lower(), autoescape=True))

    total = (
        await db.execute(select(func.count(CashbookEntry.id)).where(*filters))
    ).scalar() or 0
    result = await db.execute(
        select(CashbookEntry)
        .where(*filters)
        .order_by(CashbookEntry.date.desc(), CashbookEntry.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    entries = list(result.scalars().all())

    return CashbookListResponse(
        entries=_with_running_balance(entries),
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/summary", response_model=CashbookSummaryResponse)
async def cashbook_summary(
    period: Period = Query("current_month"),
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.READ_CASHBOOK)),
) -> CashbookSummaryResponse:
    """Credits, debits and per-category debit totals for a period."""
    start, end, period_name = _period_bounds(period, datetime.now(timezone.utc).date())
    result = await db.execute(
        select(CashbookEntry).where(CashbookEntry.date >= start, CashbookEntry.date <= end)
    )
    entries = result.scalars().all()

    total_credit = 0.0
    total_debit = 0.0
    by_category: dict[str, list[float]] = defaultdict(list)
    for entry in entries:
        amount = float(entry.amount)
        if entry.type == "CREDIT":
            total_credit += amount
        else:
            total_debit += amount
            by_category[entry.category].append(amount)

    categories = sorted(
        (
            CategoryTotal(category=name, total=round(sum(amounts), 2), count=len(amounts))
            for name, amounts in by_category.items()
        ),
        key=lambda c: c.total,
        reverse=True,
    )
    return CashbookSummaryResponse(
        period=period,
        period_name=period_name,
        start_date=start,
        end_date=end,
        total_credit=round(total_credit, 2),
        total_debit=round(total_debit, 2),
        net_amount=round(total_credit - total_debit, 2),
        entry_count=len(entries),
        debit_categories=categories,
    )


@router.get("/{entry_id}", response_model=CashbookEntryRead)
async def get_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.READ_CASHBOOK)),
) -> CashbookEntry:
    return await _get_entry(db, entry_id)


# ── Write ───────────────────────────────────────────────────────────
@router.post("", response_model=CashbookEntryRead, status_code=201)
async def create_entry(
    body: CashbookEntryCreate,
    db: AsyncSession = Depends(get_db),
    user: UserWithPermissions = Depends(require_write_access(PermissionType.CREATE_CASHBOOK)),
) -> CashbookEntry:
    entry = CashbookEntry(**body.model_dump(), created_by=user.id)
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    logger.info("User %s added cashbook entry %s (%s %s)", user.id, entry.id, entry.type, entry.amount)
    return entry


@router.put("/{entry_id}", response_model=CashbookEntryRead)
async def update_entry(
    entry_id: int,
    body: CashbookEntryUpdate,
    db: AsyncSession = Depends(get_db),
    user: UserWithPermissions = Depends(require_write_access(PermissionType.UPDATE_CASHBOOK)),
) -> CashbookEntry:
    entry = await _get_entry(db, entry_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        if value is None and field in {"date", "type", "amount", "category"}:
            continue
        setattr(entry, field, value)
    await db.commit()
    await db.refresh(entry)
    logger.info("User %s updated cashbook entry %s", user.id, entry.id)
    return entry


@router.delete("/{entry_id}", response_model=DeleteResponse)
async def delete_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserWithPermissions = Depends(require_write_access(PermissionType.DELETE_CASHBOOK)),
) -> DeleteResponse:
    entry = await _get_entry(db, entry_id)
    await db.delete(entry)
    await db.commit()
    logger.info("User %s deleted cashbook entry %s", user.id, entry_id)
    return DeleteResponse(success=True, message="Cashbook entry deleted")
