"""
Main API router that includes all endpoint routers
"""

from fastapi import APIRouter

from expense_api.api.api_v1.endpoints import (
    auth, users, expenses, subscriptions, categories, receipts, database, updater,
)
from expense_api.core.config import settings
from expense_api.core.utils import now_rfc3339

# /api/v1
api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
api_router.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
api_router.include_router(categories.router, prefix="/categories", tags=["categories"])
api_router.include_router(receipts.router, prefix="/receipts", tags=["receipts"])
api_router.include_router(database.router, prefix="/database", tags=["database"])


@api_router.get("/health", tags=["health"])
async def health():
    return {
        "status": "ok",
        "timestamp": now_rfc3339(),
        "version": settings.API_VERSION,
        "environment": settings.ENVIRONMENT,
    }


# /api/updater
updater_router = APIRouter()
updater_router.include_router(updater.router, tags=["updater"])
