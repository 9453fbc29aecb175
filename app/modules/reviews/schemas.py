"""Reviews schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReviewCreate(BaseModel):
    """Create review request; exactly one of booking or subscription."""

    booking_id: UUID | None = None
    subscription_id: UUID | None = None
    rating: int = Field(ge=1, le=5)
    comment: str = Field(default="", max_length=5000)

    @model_validator(mode="after")
    def check_target(self) -> "ReviewCreate":
        if (self.booking_id is None) == (self.subscription_id is None):
            raise ValueError("Provide exactly one of booking_id or subscription_id")
        return self


class ReviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    author_id: UUID
    mentor_id: UUID
    booking_id: UUID | None
    subscription_id: UUID | None
    rating: int
    comment: str
    created_at: datetime
