"""Reviews API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.enums import RoleEnum
from app.modules.identity.service import require_roles
from app.modules.reviews.schemas import ReviewCreate, ReviewRead
from app.modules.reviews.service import ReviewsService, get_reviews_service
from app.shared.pagination import Page, build_page, get_pagination_params
from app.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.post("", response_model=ApiResponse[ReviewRead], status_code=status.HTTP_201_CREATED)
async def create_review(
    payload: ReviewCreate,
    service: ReviewsService = Depends(get_reviews_service),
    current_user=Depends(require_roles(RoleEnum.STUDENT)),
) -> ApiResponse[ReviewRead]:
    """Review a booking or subscription."""
    review = await service.create_review(payload, current_user)
    return ok(ReviewRead.model_validate(review))


@router.get("", response_model=Page[ReviewRead])
async def list_reviews(
    mentor_id: UUID = Query(),
    pagination=Depends(get_pagination_params),
    service: ReviewsService = Depends(get_reviews_service),
) -> Page[ReviewRead]:
    """List reviews of a mentor."""
    items, total = await service.list_for_mentor(mentor_id, pagination.limit, pagination.offset)
    serialized = [ReviewRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
