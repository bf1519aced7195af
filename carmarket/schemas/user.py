"""User-related schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from carmarket.models.user import UserRole


class UserRead(BaseModel):
    """Serialized user for the account owner and admins."""

    id: uuid.UUID
    name: str
    email: EmailStr
    role: UserRole
    email_verified: bool
    suspended: bool
    image: str | None = None
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublicProfile(BaseModel):
    """Fields anyone may see about a seller or buyer."""

    id: uuid.UUID
    name: str
    image: str | None = None
    city: str | None = None
    state: str | None = None
    created_at: datetime
    active_listings: int = 0

    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    """Mutable profile fields."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    image: str | None = None
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None


class RoleUpdate(BaseModel):
    role: UserRole


class SuspendUpdate(BaseModel):
    suspended: bool


class VerifyUpdate(BaseModel):
    email_verified: bool
