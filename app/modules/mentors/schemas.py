"""Mentors schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import OfferTypeEnum


class MentorCreate(BaseModel):
    """Create mentor profile request."""

    display_name: str = Field(min_length=2, max_length=128)
    bio: str = Field(default="", max_length=5000)
    timezone: str = Field(default="UTC", max_length=64)
    offer_type: OfferTypeEnum = OfferTypeEnum.BOTH
    access_price: int | None = Field(default=None, ge=0)
    hourly_rate: int | None = Field(default=None, ge=0)


class MentorUpdate(BaseModel):
    """Update mentor rate card."""

    display_name: str | None = Field(default=None, min_length=2, max_length=128)
    bio: str | None = Field(default=None, max_length=5000)
    timezone: str | None = Field(default=None, max_length=64)
    offer_type: OfferTypeEnum | None = None
    access_price: int | None = Field(default=None, ge=0)
    hourly_rate: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class PayoutAccountUpdate(BaseModel):
    """Attach a connected payout account."""

    stripe_connect_id: str = Field(min_length=3, max_length=128)


class MentorRead(BaseModel):
    """Mentor response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    display_name: str
    bio: str
    timezone: str
    offer_type: OfferTypeEnum
    access_price: int | None
    hourly_rate: int | None
    is_active: bool
    is_trusted: bool
    verified_bookings_count: int
    stripe_onboarded: bool
    created_at: datetime
