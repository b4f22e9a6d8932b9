"""
Production list endpoints.

Reads need READ_PRODUCTION; each write needs its own production permission
and is refused for read-only roles.  Program codes are unique.
"""

from __future__ import annotations

import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_db, require_permissions, require_write_access
from app.core.rbac import PermissionType
from app.models.production import ProductionItem
from app.schemas.auth import MessageResponse
from app.schemas.cashbook import Pagination
from app.schemas.production import (ProductionItemCreate, ProductionItemRead,
                                    ProductionItemUpdate, ProductionListResponse,
                                    ProductionStatus)
from app.schemas.user import UserWithPermissions

router = APIRouter(prefix="/production", tags=["production"])
logger = logging.getLogger(__name__)


async def _get_item(db: AsyncSession, item_id: int) -> ProductionItem:
    item = await db.get(ProductionItem, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Production item not found")
    return item


async def _ensure_code_free(db: AsyncSession, program_code: str, exclude_id: int | None = None) -> None:
    query = select(ProductionItem.id).where(ProductionItem.program_code == program_code)
    if exclude_id is not None:
        query = query.where(ProductionItem.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(status_code=400, detail="Program code already exists")


# ── Read ────────────────────────────────────────────────────────────
@router.get("", response_model=ProductionListResponse)
async def list_items(
    item_status: ProductionStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.READ_PRODUCTION)),
) -> ProductionListResponse:
    """Newest first; *search* matches program code, buyer or item."""
    filters = []
    if item_status is not None:
        filters.append(ProductionItem.status == item_status)
    if search:
        term = search.lower()
        filters.append(
            or_(
                func.lower(ProductionItem.program_code).contains(term, autoescape=True),
                func.lower(ProductionItem.buyer).contains(term, autoescape=True),
                func.lower(ProductionItem.item).contains(term, autoescape=True),
            )
        )

    total = (
        await db.execute(select(func.count(ProductionItem.id)).where(*filters))
    ).scalar() or 0
    result = await db.execute(
        select(ProductionItem)
        .where(*filters)
        .order_by(ProductionItem.created_at.desc(), ProductionItem.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return ProductionListResponse(
        items=[ProductionItemRead.model_validate(i) for i in result.scalars().all()],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get("/{item_id}", response_model=ProductionItemRead)
async def get_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    _user: UserWithPermissions = Depends(require_permissions(PermissionType.READ_PRODUCTION)),
) -> ProductionItem:
    return await _get_item(db, item_id)


# ── Write ───────────────────────────────────────────────────────────
@router.post("", response_model=ProductionItemRead, status_code=201)
async def create_item(
    body: ProductionItemCreate,
    db: AsyncSession = Depends(get_db),
    user: UserWithPermissions = Depends(require_write_access(PermissionType.CREATE_PRODUCTION)),
) -> ProductionItem:
    await _ensure_code_free(db, body.program_code)
    item = ProductionItem(**body.model_dump(), created_by=user.id)
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.info("User %s added production item %s (%s)", user.id, item.id, item.program_code)
    return item


@router.put("/{item_id}", response_model=ProductionItemRead)
async def update_item(
    item_id: int,
    body: ProductionItemUpdate,
    db: AsyncSession = Depends(get_db),
    user: UserWithPermissions = Depends(require_write_access(PermissionType.UPDATE_PRODUCTION)),
) -> ProductionItem:
    item = await _get_item(db, item_id)
    await _ensure_code_free(db, body.program_code, exclude_id=item.id)
    for field, value in body.model_dump().items():
        if field == "status" and value is None:
            continue
        setattr(item, field, value)
    await db.commit()
    await db.refresh(item)
    logger.info("User %s updated production item %s", user.id, item.id)
    return item


@router.delete("/{item_id}", response_model=MessageResponse)
async def delete_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserWithPermissions = Depends(require_write_access(PermissionType.DELETE_PRODUCTION)),
) -> MessageResponse:
    item = await _get_item(db, item_id)
    await db.delete(item)
    await db.commit()
    logger.info("User %s deleted production item %s", user.id, item_id)
    return MessageResponse(message="Production item deleted successfully")
