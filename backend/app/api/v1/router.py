"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    auth, admin, profiles, wallet, finance, reports, realtime
)

router = APIRouter()

# Authentication and role views
router.include_router(auth.router)
router.include_router(auth.me_router)

# Admin endpoints (users, audit trail, wallet reconciliation)
router.include_router(admin.router)

# Profile directory
router.include_router(profiles.router)

# Wallet ledger
router.include_router(wallet.router)

# School finance and fees
router.include_router(finance.router)
router.include_router(reports.router)

# Change notifications
router.include_router(realtime.router)
