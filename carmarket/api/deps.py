"""Common API dependencies."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.config import get_settings
from carmarket.core.security import decode_access_token
from carmarket.core.settings import get_payment_settings
from carmarket.db.session import get_session
from carmarket.integrations import DodoClient, StripeClient
from carmarket.models.user import User
from carmarket.services.reset_link_store import ResetLinkStore

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_prefix}/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.api_v1_prefix}/auth/token", auto_error=False
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


async def _user_from_token(session: AsyncSession, token: str) -> User | None:
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    subject = payload.get("sub")
    try:
        user_id = uuid.UUID(subject)
    except (ValueError, TypeError):
        return None
    return await session.get(User, user_id)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User:
    """Authenticate request via bearer token."""
    user = await _user_from_token(session, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Reject suspended accounts."""
    if current_user.suspended:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Account suspended"
        )
    return current_user


async def get_optional_user(
    token: Annotated[str | None, Depends(optional_oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User | None:
    """Resolve the caller when a valid token is sent; anonymous otherwise."""
    if not token:
        return None
    return await _user_from_token(session, token)


def get_stripe_client() -> StripeClient | None:
    payment_settings = get_payment_settings()
    if not payment_settings.stripe_secret_key and not payment_settings.stripe_webhook_secret:
        return None
    return StripeClient(
        payment_settings.stripe_secret_key,
        webhook_secret=payment_settings.stripe_webhook_secret,
        checkout_ttl_minutes=payment_settings.booking_hold_minutes,
    )


def get_dodo_client() -> DodoClient | None:
    payment_settings = get_payment_settings()
    if not payment_settings.dodo_api_key and not payment_settings.dodo_webhook_secret:
        return None
    return DodoClient(
        payment_settings.dodo_api_key,
        webhook_secret=payment_settings.dodo_webhook_secret,
        base_url=payment_settings.dodo_base_url,
        product_id=payment_settings.dodo_product_id,
    )


def get_reset_link_store(request: Request) -> ResetLinkStore:
    return request.app.state.reset_links


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
CurrentUser = Annotated[User, Depends(get_current_active_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
