"""Versioned API router."""

from fastapi import APIRouter

from . import (
    admin,
    analytics,
    auth,
    complaints,
    dev,
    favorites,
    health,
    inquiries,
    transactions,
    users,
    vehicles,
    webhooks,
)

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(vehicles.router, prefix="/vehicles", tags=["vehicles"])
router.include_router(
    transactions.router, prefix="/transactions", tags=["transactions"]
)
router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
router.include_router(inquiries.router, prefix="/inquiries", tags=["inquiries"])
router.include_router(favorites.router, prefix="/favorites", tags=["favorites"])
router.include_router(complaints.router, prefix="/complaints", tags=["complaints"])
router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
router.include_router(admin.router, prefix="/admin", tags=["admin"])
router.include_router(dev.router, prefix="/dev", tags=["dev"])
