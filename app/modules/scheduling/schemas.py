"""Scheduling schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AvailableSlotCreate(BaseModel):
    """Declare an open availability window."""

    start_at: datetime
    end_at: datetime
    is_free_session: bool = False


class BlockedSlotCreate(BaseModel):
    """Declare a closed window."""

    start_at: datetime
    end_at: datetime
    reason: str | None = Field(default=None, max_length=255)


class AvailableSlotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mentor_id: UUID
    start_at: datetime
    end_at: datetime
    is_free_session: bool
    created_at: datetime


class BlockedSlotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mentor_id: UUID
    start_at: datetime
    end_at: datetime
    reason: str | None
    created_at: datetime


class AvailableTimesRead(BaseModel):
    """Bookable start times for one day."""

    date: date
    duration_minutes: int
    slots: list[str]
    free_session_slots: list[str] = Field(default_factory=list)
    message: str | None = None
