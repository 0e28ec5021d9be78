"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import clients, works, balances, analytics

router = APIRouter()

# Clients
router.include_router(clients.router)

# Work transactions (transaction store)
router.include_router(works.router)

# Balance ledger: history, validation and repair
router.include_router(balances.router)
router.include_router(balances.admin_router)

# Analytics
router.include_router(analytics.router)
