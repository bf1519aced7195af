"""Inquiry thread schemas."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from carmarket.models.inquiry import InquiryStatus


class InquiryCreate(BaseModel):
    vehicle_id: uuid.UUID
    message: str = Field(min_length=1, max_length=5000)


class InquiryMessageCreate(BaseModel):
    message: str = Field(min_length=1, max_length=5000)


class InquiryRespond(BaseModel):
    response: str = Field(min_length=1, max_length=5000)


class InquiryMessageRead(BaseModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    message: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InquiryRead(BaseModel):
    id: uuid.UUID
    vehicle_id: uuid.UUID
    buyer_id: uuid.UUID
    seller_id: uuid.UUID
    message: str
    status: InquiryStatus
    seller_response: str | None = None
    created_at: datetime
    updated_at: datetime
    messages: list[InquiryMessageRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
