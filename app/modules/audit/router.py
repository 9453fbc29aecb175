"""Audit API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.modules.audit.repository import AuditRepository
from app.modules.audit.schemas import AuditLogRead
from app.modules.identity.service import require_roles
from app.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/admin/audit", tags=["audit"])


@router.get("/logs", response_model=Page[AuditLogRead])
async def list_logs(
    entity_id: str | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    session: AsyncSession = Depends(get_db_session),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> Page[AuditLogRead]:
    """List audit logs (admin only)."""
    items, total = await AuditRepository(session).list_audit_logs(
        pagination.limit,
        pagination.offset,
        entity_id=entity_id,
    )
    serialized = [AuditLogRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
