"""Local-only helpers; every route answers 404 in production."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from carmarket.api.deps import get_reset_link_store
from carmarket.core.config import get_settings
from carmarket.schemas.auth import ResetLinkRead
from carmarket.services.reset_link_store import ResetLinkStore

router = APIRouter()


@router.get("/reset-link/{email}", response_model=ResetLinkRead)
async def latest_reset_link(
    email: str, links: Annotated[ResetLinkStore, Depends(get_reset_link_store)]
) -> ResetLinkRead:
    """Return the most recent unexpired reset link issued for ``email``."""
    if get_settings().is_production:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    entry = links.get(email)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="No reset link for this email"
        )
    return ResetLinkRead(
        email=email.lower(), link=entry.link, expires_at=entry.expires_at_datetime
    )
