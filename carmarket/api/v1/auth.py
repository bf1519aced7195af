"""Authentication endpoints."""

from __future__ import annotations

import logging
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from carmarket.api.deps import SessionDep, get_reset_link_store
from carmarket.api.rate_limits import DEFAULT_RATE_DEP, LOGIN_RATE_DEP
from carmarket.core.config import get_settings
from carmarket.schemas.auth import (
    PasswordResetConfirm,
    PasswordResetRequest,
    PasswordResetRequestResponse,
    RegistrationRequest,
    Token,
)
from carmarket.schemas.user import UserRead
from carmarket.services import auth_service, password_reset_service
from carmarket.services.reset_link_store import ResetLinkStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/token",
    response_model=Token,
    summary="Obtain access token",
    dependencies=[LOGIN_RATE_DEP],
)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    session: SessionDep,
) -> Token:
    """Validate credentials and issue a bearer token."""
    user = await auth_service.authenticate_user(
        session, email=form_data.username, password=form_data.password
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Token(access_token=auth_service.create_access_token_for_user(user))


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a buyer or seller",
    dependencies=[DEFAULT_RATE_DEP],
)
async def register(payload: RegistrationRequest, session: SessionDep) -> UserRead:
    user = await auth_service.register_user(session, payload)
    logger.info("Registered %s %s", user.role.value, user.id)
    return UserRead.model_validate(user)


@router.post(
    "/password-reset/request",
    response_model=PasswordResetRequestResponse,
    summary="Request password reset",
    dependencies=[DEFAULT_RATE_DEP],
)
async def password_reset_request(
    payload: PasswordResetRequest,
    session: SessionDep,
    links: Annotated[ResetLinkStore, Depends(get_reset_link_store)],
) -> PasswordResetRequestResponse:
    token_info = await password_reset_service.create_reset_token(
        session, email=payload.email
    )
    if token_info is None:
        return PasswordResetRequestResponse()

    raw_token, expires_at = token_info
    settings = get_settings()
    # No mail delivery: outside production the link is kept for the dev lookup.
    if not settings.is_production:
        query = urlencode({"token": raw_token})
        links.put(payload.email, f"{settings.frontend_url}/reset-password?{query}")
    return PasswordResetRequestResponse(expires_at=expires_at)


@router.post(
    "/password-reset/confirm",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset password with a token",
    dependencies=[DEFAULT_RATE_DEP],
)
async def password_reset_confirm(
    payload: PasswordResetConfirm, session: SessionDep
) -> None:
    await password_reset_service.consume_reset_token(
        session, token=payload.token, new_password=payload.new_password
    )
