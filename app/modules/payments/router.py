"""Payment provider webhook router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from app.modules.booking.service import BookingService, get_booking_service
from app.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook", response_model=ApiResponse[dict])
async def provider_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    service: BookingService = Depends(get_booking_service),
) -> ApiResponse[dict]:
    """Receive signed payment events."""
    event_type = await service.handle_provider_webhook(await request.body(), stripe_signature)
    return ok({"received": True, "type": event_type})
