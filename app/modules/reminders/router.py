"""Scheduler-triggered scan endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.security import verify_cron_secret
from app.modules.reminders.service import ReminderService, get_reminder_service
from app.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/{scan_name}", methods=["GET", "POST"], response_model=ApiResponse[dict])
async def run_scan(
    scan_name: str,
    service: ReminderService = Depends(get_reminder_service),
) -> ApiResponse[dict]:
    """Run one named scan and report its counters."""
    return ok(await service.run_scan(scan_name))
