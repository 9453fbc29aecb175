"""Booking API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.core.config import get_settings
from app.core.rate_limit import enforce_rate_limit
from app.modules.booking.schemas import (
    BookingCancelRequest,
    BookingCreate,
    BookingRead,
    BookingRescheduleRequest,
    CheckoutRead,
    StudentConfirmRequest,
)
from app.modules.booking.service import BookingService, get_booking_service
from app.modules.identity.service import get_current_user
from app.shared.pagination import Page, build_page, get_pagination_params
from app.shared.responses import ApiResponse, ok
from app.shared.utils import utc_now

router = APIRouter(prefix="/bookings", tags=["booking"])


async def enforce_booking_rate_limit(current_user=Depends(get_current_user)) -> None:
    settings = get_settings()
    await enforce_rate_limit(
        action="booking_create",
        identity=str(current_user.id),
        max_requests=settings.rate_limit_booking_requests,
    )


@router.post(
    "",
    response_model=ApiResponse[BookingRead],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_booking_rate_limit)],
)
async def create_booking(
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> ApiResponse[BookingRead]:
    """Create booking (PENDING until paid)."""
    booking = await service.create_booking(payload, current_user)
    return ok(BookingRead.from_booking(booking, utc_now()))


@router.get("/my", response_model=Page[BookingRead])
async def list_my_bookings(
    pagination=Depends(get_pagination_params),
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> Page[BookingRead]:
    """List bookings for current user."""
    items, total = await service.list_bookings(current_user, pagination.limit, pagination.offset)
    now = utc_now()
    serialized = [BookingRead.from_booking(item, now) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{booking_id}", response_model=ApiResponse[BookingRead])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> ApiResponse[BookingRead]:
    booking = await service.get_booking(booking_id, current_user)
    return ok(BookingRead.from_booking(booking, utc_now()))


@router.post("/{booking_id}/checkout", response_model=ApiResponse[CheckoutRead])
async def start_checkout(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> ApiResponse[CheckoutRead]:
    """Open hosted checkout for a pending booking."""
    return ok(await service.start_checkout(booking_id, current_user))


@router.post("/{booking_id}/cancel", response_model=ApiResponse[BookingRead])
async def cancel_booking(
    booking_id: UUID,
    payload: BookingCancelRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> ApiResponse[BookingRead]:
    """Cancel booking and apply refund policy."""
    booking = await service.cancel_booking(booking_id, payload, current_user)
    return ok(BookingRead.from_booking(booking, utc_now()))


@router.post("/{booking_id}/reschedule", response_model=ApiResponse[BookingRead])
async def reschedule_booking(
    booking_id: UUID,
    payload: BookingRescheduleRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> ApiResponse[BookingRead]:
    """Move a confirmed session to a new time."""
    booking = await service.reschedule_booking(booking_id, payload, current_user)
    return ok(BookingRead.from_booking(booking, utc_now()))


@router.post("/{booking_id}/complete", response_model=ApiResponse[BookingRead])
async def mark_complete(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> ApiResponse[BookingRead]:
    """Mentor marks the session delivered."""
    booking = await service.mark_complete(booking_id, current_user)
    return ok(BookingRead.from_booking(booking, utc_now()))


@router.post("/{booking_id}/student-confirm", response_model=ApiResponse[BookingRead])
async def student_confirm(
    booking_id: UUID,
    payload: StudentConfirmRequest,
    service: BookingService = Depends(get_booking_service),
    current_user=Depends(get_current_user),
) -> ApiResponse[BookingRead]:
    """Student confirms the session or reports fraud."""
    if payload.action == "report_fraud":
        await enforce_rate_limit(
            action="fraud_report",
            identity=str(current_user.id),
            max_requests=get_settings().rate_limit_fraud_report_requests,
        )
    booking = await service.student_confirm(booking_id, payload, current_user)
    return ok(BookingRead.from_booking(booking, utc_now()))
