"""Admin dispute API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.enums import RoleEnum
from app.modules.disputes.schemas import DisputeRead, DisputeResolutionRead, DisputeResolveRequest
from app.modules.disputes.service import DisputeService, get_dispute_service
from app.modules.identity.service import require_roles
from app.shared.pagination import Page, build_page, get_pagination_params
from app.shared.responses import ApiResponse, ok
from app.shared.utils import utc_now

router = APIRouter(prefix="/admin/disputes", tags=["disputes"])


@router.get("", response_model=Page[DisputeRead])
async def list_disputes(
    unresolved_only: bool = Query(default=False),
    pagination=Depends(get_pagination_params),
    service: DisputeService = Depends(get_dispute_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> Page[DisputeRead]:
    """List fraud-reported bookings."""
    items, total = await service.list_disputes(pagination.limit, pagination.offset, unresolved_only)
    now = utc_now()
    serialized = [DisputeRead.from_booking(item, now) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{booking_id}", response_model=ApiResponse[DisputeRead])
async def get_dispute(
    booking_id: UUID,
    service: DisputeService = Depends(get_dispute_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> ApiResponse[DisputeRead]:
    booking = await service.get_dispute(booking_id)
    return ok(DisputeRead.from_booking(booking, utc_now()))


@router.post("/{booking_id}/resolve", response_model=ApiResponse[DisputeResolutionRead])
async def resolve_dispute(
    booking_id: UUID,
    payload: DisputeResolveRequest,
    service: DisputeService = Depends(get_dispute_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> ApiResponse[DisputeResolutionRead]:
    """Apply refund/payout split for a fraud report."""
    outcome = await service.resolve(booking_id, payload, current_user)
    return ok(
        DisputeResolutionRead(
            booking_id=outcome.booking.id,
            decision=payload.decision,
            refund_amount=outcome.refund_amount,
            payout_amount=outcome.payout_amount,
            payout_status=outcome.booking.payout_status,
            payout_succeeded=outcome.payout_succeeded,
            transfer_reversed=outcome.transfer_reversed,
        ),
    )
