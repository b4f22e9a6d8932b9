"""
Permission catalog seeding and explicit grant management.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.rbac import PERMISSION_DESCRIPTIONS, PermissionType
from app.models.permission import Permission, UserPermission

logger = logging.getLogger(__name__)


async def seed_permission_catalog(db: AsyncSession) -> int:
    """Insert any ``PermissionType`` missing from the catalog; returns how many."""
    result = await db.execute(select(Permission.name))
    existing = set(result.scalars().all())

    missing = [p for p in PermissionType if p.value not in existing]
    for permission in missing:
        db.add(Permission(name=permission.value, description=PERMISSION_DESCRIPTIONS[permission]))
    if missing:
        await db.commit()
        logger.info("Seeded %d permissions", len(missing))
    return len(missing)


async def replace_user_grants(
    db: AsyncSession, user_id: str, names: Iterable[PermissionType | str]
) -> list[str]:
    """Swap the user's explicit grants for *names* in one transaction.

    Names must already be valid ``PermissionType`` values.
    """
    wanted = sorted({PermissionType(n).value for n in names})
    await seed_permission_catalog(db)

    await db.execute(delete(UserPermission).where(UserPermission.user_id == user_id))
    if wanted:
        result = await db.execute(select(Permission).where(Permission.name.in_(wanted)))
        for permission in result.scalars().all():
            db.add(UserPermission(user_id=user_id, permission_id=permission.id, granted=True))
    await db.commit()
    logger.info("Replaced explicit grants for user %s: %s", user_id, wanted)
    return wanted


async def clear_user_grants(db: AsyncSession, user_id: str) -> None:
    await db.execute(delete(UserPermission).where(UserPermission.user_id == user_id))
