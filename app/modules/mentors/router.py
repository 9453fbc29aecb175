"""Mentors API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.core.enums import RoleEnum
from app.modules.identity.service import require_roles
from app.modules.mentors.schemas import MentorCreate, MentorRead, MentorUpdate, PayoutAccountUpdate
from app.modules.mentors.service import MentorsService, get_mentors_service
from app.shared.pagination import Page, build_page, get_pagination_params
from app.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/mentors", tags=["mentors"])


@router.post("/me", response_model=ApiResponse[MentorRead], status_code=status.HTTP_201_CREATED)
async def create_profile(
    payload: MentorCreate,
    service: MentorsService = Depends(get_mentors_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[MentorRead]:
    """Create mentor profile."""
    mentor = await service.create_profile(payload, current_user)
    return ok(MentorRead.model_validate(mentor))


@router.get("/me", response_model=ApiResponse[MentorRead])
async def get_own_profile(
    service: MentorsService = Depends(get_mentors_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[MentorRead]:
    mentor = await service.get_own_profile(current_user)
    return ok(MentorRead.model_validate(mentor))


@router.patch("/me", response_model=ApiResponse[MentorRead])
async def update_profile(
    payload: MentorUpdate,
    service: MentorsService = Depends(get_mentors_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[MentorRead]:
    """Update mentor rate card."""
    mentor = await service.update_profile(payload, current_user)
    return ok(MentorRead.model_validate(mentor))


@router.put("/me/payout-account", response_model=ApiResponse[MentorRead])
async def attach_payout_account(
    payload: PayoutAccountUpdate,
    service: MentorsService = Depends(get_mentors_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[MentorRead]:
    """Connect payout account."""
    mentor = await service.attach_payout_account(payload, current_user)
    return ok(MentorRead.model_validate(mentor))


@router.post("/me/payout-account/refresh", response_model=ApiResponse[MentorRead])
async def refresh_payout_status(
    service: MentorsService = Depends(get_mentors_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[MentorRead]:
    """Re-check payout capability with the provider."""
    mentor = await service.refresh_payout_status(current_user)
    return ok(MentorRead.model_validate(mentor))


@router.get("", response_model=Page[MentorRead])
async def list_mentors(
    pagination=Depends(get_pagination_params),
    service: MentorsService = Depends(get_mentors_service),
) -> Page[MentorRead]:
    """List active mentors."""
    items, total = await service.list_mentors(pagination.limit, pagination.offset)
    serialized = [MentorRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{mentor_id}", response_model=ApiResponse[MentorRead])
async def get_mentor(
    mentor_id: UUID,
    service: MentorsService = Depends(get_mentors_service),
) -> ApiResponse[MentorRead]:
    mentor = await service.get_mentor(mentor_id)
    return ok(MentorRead.model_validate(mentor))
