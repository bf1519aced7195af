"""Password reset services."""
from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.core.errors import PermissionDeniedError, ValidationError
from carmarket.core.security import get_password_hash
from carmarket.models import PasswordResetToken, User, UserRole
from carmarket.models.mixins import as_utc
from carmarket.services import user_service

logger = logging.getLogger(__name__)

_RESET_TOKEN_TTL = timedelta(hours=1)


def _hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


async def create_reset_token(
    session: AsyncSession, *, email: str
) -> tuple[str, datetime] | None:
    """Issue a fresh token, replacing any outstanding one. Unknown emails yield None."""
    user = await user_service.get_user_by_email(session, email=email)
    if user is None:
        return None
    if user.role == UserRole.ADMIN:
        raise PermissionDeniedError("Admin passwords cannot be reset here")

    await session.execute(
        delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id)
    )

    raw_token = secrets.token_urlsafe(32)
    expires_at = datetime.now(UTC) + _RESET_TOKEN_TTL
    session.add(
        PasswordResetToken(
            user_id=user.id,
            token_hash=_hash_token(raw_token),
            expires_at=expires_at,
        )
    )
    await session.commit()
    logger.info("Issued password reset token for user %s", user.id)
    return raw_token, expires_at


async def consume_reset_token(
    session: AsyncSession, *, token: str, new_password: str
) -> User:
    result = await session.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.token_hash == _hash_token(token)
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        raise ValidationError("Invalid password reset token")
    if record.consumed_at is not None:
        raise ValidationError("Password reset token already used")
    if as_utc(record.expires_at) < datetime.now(UTC):
        raise ValidationError("Password reset token has expired")

    user = await session.get(User, record.user_id)
    if user is None:
        raise ValidationError("Invalid password reset token")
    user.hashed_password = get_password_hash(new_password)
    record.consumed_at = datetime.now(UTC)
    await session.commit()
    return user
