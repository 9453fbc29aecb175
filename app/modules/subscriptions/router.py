"""Subscriptions API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.modules.identity.service import get_current_user
from app.modules.subscriptions.repository import SubscriptionsRepository
from app.modules.subscriptions.schemas import SubscriptionRead
from app.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/my", response_model=ApiResponse[list[SubscriptionRead]])
async def list_my_subscriptions(
    session: AsyncSession = Depends(get_db_session),
    current_user=Depends(get_current_user),
) -> ApiResponse[list[SubscriptionRead]]:
    """List subscriptions of current student."""
    items = await SubscriptionsRepository(session).list_for_student(current_user.id)
    return ok([SubscriptionRead.model_validate(item) for item in items])
