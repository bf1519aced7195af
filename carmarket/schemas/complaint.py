"""Complaint schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from carmarket.models.complaint import ComplaintStatus


class ComplaintCreate(BaseModel):
    subject: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10)
    reported_user_id: uuid.UUID | None = None


class ComplaintRead(BaseModel):
    id: uuid.UUID
    reporter_id: uuid.UUID
    reported_user_id: uuid.UUID | None = None
    subject: str
    description: str
    status: ComplaintStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ComplaintStatusUpdate(BaseModel):
    status: ComplaintStatus
