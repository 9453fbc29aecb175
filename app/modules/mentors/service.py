"""Mentors business logic layer."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.core.enums import OfferTypeEnum, RoleEnum
from app.modules.identity.models import User
from app.modules.mentors.models import Mentor
from app.modules.mentors.repository import MentorsRepository
from app.modules.mentors.schemas import MentorCreate, MentorUpdate, PayoutAccountUpdate
from app.modules.payments.provider import PaymentProvider, ProviderError, get_payment_provider
from app.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    ProviderException,
    UnauthorizedException,
)

logger = logging.getLogger(__name__)


def _validate_rate_card(offer_type: OfferTypeEnum, access_price: int | None, hourly_rate: int | None) -> None:
    match offer_type:
        case OfferTypeEnum.ACCESS:
            needs_access, needs_hourly = True, False
        case OfferTypeEnum.TIME:
            needs_access, needs_hourly = False, True
        case OfferTypeEnum.BOTH:
            needs_access, needs_hourly = True, True
    if needs_access and access_price is None:
        raise BusinessRuleException("Access price is required for this offer type")
    if needs_hourly and hourly_rate is None:
        raise BusinessRuleException("Hourly rate is required for this offer type")


class MentorsService:
    """Mentors domain service."""

    def __init__(self, repository: MentorsRepository, provider: PaymentProvider) -> None:
        self.repository = repository
        self.provider = provider

    async def create_profile(self, payload: MentorCreate, actor: User) -> Mentor:
        """Create mentor profile for current mentor account."""
        if actor.role.name != RoleEnum.MENTOR:
            raise UnauthorizedException("Only mentor accounts can create a mentor profile")

        existing = await self.repository.get_mentor_by_user_id(actor.id)
        if existing is not None:
            raise ConflictException("Mentor profile already exists for user")

        _validate_rate_card(payload.offer_type, payload.access_price, payload.hourly_rate)
        return await self.repository.create_mentor(
            user_id=actor.id,
            display_name=payload.display_name,
            bio=payload.bio,
            timezone=payload.timezone,
            offer_type=payload.offer_type,
            access_price=payload.access_price,
            hourly_rate=payload.hourly_rate,
        )

    async def get_mentor(self, mentor_id: UUID) -> Mentor:
        mentor = await self.repository.get_mentor(mentor_id)
        if mentor is None:
            raise NotFoundException("Mentor not found")
        return mentor

    async def get_own_profile(self, actor: User) -> Mentor:
        mentor = await self.repository.get_mentor_by_user_id(actor.id)
        if mentor is None:
            raise NotFoundException("Mentor profile not found")
        return mentor

    async def update_profile(self, payload: MentorUpdate, actor: User) -> Mentor:
        """Update rate card of current mentor."""
        mentor = await self.get_own_profile(actor)
        changes = payload.model_dump(exclude_none=True)
        _validate_rate_card(
            changes.get("offer_type", mentor.offer_type),
            changes.get("access_price", mentor.access_price),
            changes.get("hourly_rate", mentor.hourly_rate),
        )
        return await self.repository.update_mentor(mentor, **changes)

    async def attach_payout_account(self, payload: PayoutAccountUpdate, actor: User) -> Mentor:
        """Store connected account reference and refresh its payout capability."""
        mentor = await self.get_own_profile(actor)
        await self.repository.update_mentor(
            mentor,
            stripe_connect_id=payload.stripe_connect_id,
            stripe_onboarded=False,
        )
        return await self.refresh_payout_status(actor)

    async def refresh_payout_status(self, actor: User) -> Mentor:
        """Ask provider whether the connected account may receive payouts."""
        mentor = await self.get_own_profile(actor)
        if not mentor.stripe_connect_id:
            raise BusinessRuleException("Payout account is not connected")

        try:
            capability = await self.provider.check_account_capability(mentor.stripe_connect_id)
        except ProviderError as exc:
            raise ProviderException(exc.message) from exc

        onboarded = capability.charges_enabled and capability.payouts_enabled
        if onboarded != mentor.stripe_onboarded:
            logger.info("Mentor %s payout onboarding changed to %s", mentor.id, onboarded)
        return await self.repository.update_mentor(mentor, stripe_onboarded=onboarded)

    async def list_mentors(self, limit: int, offset: int) -> tuple[list[Mentor], int]:
        return await self.repository.list_active_mentors(limit=limit, offset=offset)


async def get_mentors_service(session: AsyncSession = Depends(get_db_session)) -> MentorsService:
    """Dependency provider for mentors service."""
    return MentorsService(MentorsRepository(session), get_payment_provider())
