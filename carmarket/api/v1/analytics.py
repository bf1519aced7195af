"""Dashboard analytics endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from carmarket.api.deps import CurrentUser, SessionDep
from carmarket.schemas.analytics import BuyerAnalytics, SellerAnalytics
from carmarket.services import analytics_service

router = APIRouter()


@router.get("/seller", response_model=SellerAnalytics, summary="Seller dashboard")
async def seller_analytics(
    session: SessionDep, current_user: CurrentUser
) -> SellerAnalytics:
    return await analytics_service.seller_analytics(session, seller_id=current_user.id)


@router.get("/buyer", response_model=BuyerAnalytics, summary="Buyer dashboard")
async def buyer_analytics(
    session: SessionDep, current_user: CurrentUser
) -> BuyerAnalytics:
    return await analytics_service.buyer_analytics(session, buyer_id=current_user.id)
