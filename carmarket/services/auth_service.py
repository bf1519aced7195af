"""Authentication service helpers."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import PermissionDeniedError
from carmarket.core.security import create_access_token, verify_password
from carmarket.models.user import User, UserRole
from carmarket.schemas.auth import RegistrationRequest
from carmarket.services import user_service

_SELF_SERVICE_ROLES = {UserRole.BUYER, UserRole.SELLER}


async def authenticate_user(
    session: AsyncSession, email: str, password: str
) -> User | None:
    """Validate credentials and return a user if correct."""
    user = await user_service.get_user_by_email(session, email=email)
    if user is None:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token_for_user(user: User) -> str:
    """Generate a JWT for a user."""
    return create_access_token(str(user.id), role=user.role.value)


async def register_user(session: AsyncSession, payload: RegistrationRequest) -> User:
    if payload.role not in _SELF_SERVICE_ROLES:
        raise PermissionDeniedError("Admin accounts cannot be self-registered")
    return await user_service.create_user(
        session,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        phone=payload.phone,
    )


async def bootstrap_admin(
    session: AsyncSession, *, name: str, email: str, password: str
) -> User:
    """Create the first admin if the email is not yet registered."""
    existing = await user_service.get_user_by_email(session, email=email)
    if existing:
        return existing
    return await user_service.create_user(
        session, name=name, email=email, password=password, role=UserRole.ADMIN
    )
