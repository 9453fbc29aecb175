"""Identity API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.core.rate_limit import enforce_login_rate_limit
from app.modules.identity.schemas import AccessToken, LoginRequest, UserCreate, UserRead
from app.modules.identity.service import IdentityService, get_current_user, get_identity_service
from app.shared.responses import ApiResponse, ok

router = APIRouter(prefix="/identity", tags=["identity"])


@router.post(
    "/auth/register",
    response_model=ApiResponse[UserRead],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    payload: UserCreate,
    service: IdentityService = Depends(get_identity_service),
) -> ApiResponse[UserRead]:
    """Register a new account."""
    user = await service.register(payload)
    return ok(UserRead.model_validate(user))


@router.post(
    "/auth/login",
    response_model=ApiResponse[AccessToken],
    dependencies=[Depends(enforce_login_rate_limit)],
)
async def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> ApiResponse[AccessToken]:
    """Sign in by email/password."""
    return ok(await service.login(payload))


@router.get("/users/me", response_model=ApiResponse[UserRead])
async def get_me(current_user=Depends(get_current_user)) -> ApiResponse[UserRead]:
    """Return profile of authenticated user."""
    return ok(UserRead.model_validate(current_user))
