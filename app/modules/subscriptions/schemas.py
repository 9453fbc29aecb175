"""Subscriptions schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.core.enums import SubscriptionStatusEnum


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    mentor_id: UUID
    plan_name: str
    status: SubscriptionStatusEnum
    created_at: datetime
