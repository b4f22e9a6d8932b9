"""
Garment ERP — Application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select

from app.api.v1.api import api_router
from app.api.v1.endpoints.auth import limiter
from app.core.config import settings
from app.core.exceptions import register_exception_handlers
from app.core.rbac import Role, build_default_policy
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import async_session_factory, engine

# Ensure all models are imported so metadata.create_all can see them
from app.models.cashbook import CashbookEntry  # noqa: F401
from app.models.permission import Permission, UserPermission  # noqa: F401
from app.models.production import ProductionItem  # noqa: F401
from app.models.session import UserSession  # noqa: F401
from app.models.user import User
from app.services.permissions import seed_permission_catalog

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_first_admin() -> None:
    """Create the configured SUPER_ADMIN account if no such e-mail exists."""
    email = settings.FIRST_ADMIN_EMAIL.strip().lower()
    async with async_session_factory() as session:
        result = await session.execute(
            select(User.id).where(func.lower(User.email) == email)
        )
        if result.scalar_one_or_none() is not None:
            return
        session.add(
            User(
                name=settings.FIRST_ADMIN_NAME,
                email=email,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                role=Role.SUPER_ADMIN.value,
            )
        )
        await session.commit()
        logger.info("Default super admin created: %s (password: <redacted>)", email)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    async with async_session_factory() as session:
        await seed_permission_catalog(session)
    await seed_first_admin()

    app.state.rbac = build_default_policy()

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Garment ERP: authentication, role-based access control and cashbook",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Rate limiting on sign-in / sign-up
    application.state.limiter = limiter

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
