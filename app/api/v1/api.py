"""
V1 API router aggregator — wires all endpoint modules together.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (admin, auth, cashbook, health, production,
                                  profile)

api_router = APIRouter()

# Sign-in, sign-up, sign-out, current user, page access
api_router.include_router(auth.router)

# The caller's own account
api_router.include_router(profile.router)

# User accounts, explicit grants, role/permission catalog
api_router.include_router(admin.router)

# Guarded business resources
api_router.include_router(cashbook.router)
api_router.include_router(production.router)

# Public liveness
api_router.include_router(health.router)
