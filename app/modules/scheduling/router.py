"""Scheduling API router."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.enums import RoleEnum
from app.modules.identity.service import require_roles
from app.modules.scheduling.schemas import (
    AvailableSlotCreate,
    AvailableSlotRead,
    AvailableTimesRead,
    BlockedSlotCreate,
    BlockedSlotRead,
)
from app.modules.scheduling.service import SchedulingService, get_scheduling_service
from app.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/mentors", tags=["scheduling"])

@router.post(
    "/me/available-slots",
    response_model=ApiResponse[AvailableSlotRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_available_slot(
    payload: AvailableSlotCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[AvailableSlotRead]:
    """Declare an availability window."""
    slot = await service.create_available_slot(payload, current_user)
    return ok(AvailableSlotRead.model_validate(slot))

@router.get("/me/available-slots", response_model=ApiResponse[list[AvailableSlotRead]])
async def list_available_slots(
    start_at: datetime = Query(),
    end_at: datetime = Query(),
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[list[AvailableSlotRead]]:
    available, _ = await service.list_own_slots(current_user, start_at, end_at)
    return ok([AvailableSlotRead.model_validate(item) for item in available])

@router.delete("/me/available-slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_available_slot(
    slot_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> Response:
    await service.delete_available_slot(slot_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.post(
    "/me/blocked-slots",
    response_model=ApiResponse[BlockedSlotRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_blocked_slot(
    payload: BlockedSlotCreate,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[BlockedSlotRead]:
    """Block out a time window."""
    slot = await service.create_blocked_slot(payload, current_user)
    return ok(BlockedSlotRead.model_validate(slot))

@router.get("/me/blocked-slots", response_model=ApiResponse[list[BlockedSlotRead]])
async def list_blocked_slots(
    start_at: datetime = Query(),
    end_at: datetime = Query(),
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> ApiResponse[list[BlockedSlotRead]]:
    _, blocked = await service.list_own_slots(current_user, start_at, end_at)
    return ok([BlockedSlotRead.model_validate(item) for item in blocked])

@router.delete("/me/blocked-slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_blocked_slot(
    slot_id: UUID,
    service: SchedulingService = Depends(get_scheduling_service),
    current_user=Depends(require_roles(RoleEnum.MENTOR)),
) -> Response:
    await service.delete_blocked_slot(slot_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/{mentor_id}/available-slots", response_model=ApiResponse[AvailableTimesRead])
async def get_available_slots(
    mentor_id: UUID,
    day: date = Query(alias="date"),
    duration: int = Query(default=60),
    service: SchedulingService = Depends(get_scheduling_service),
) -> ApiResponse[AvailableTimesRead]:
    """List bookable start times (UTC HH:MM) for a day."""
    return ok(await service.get_available_times(mentor_id, day, duration))
