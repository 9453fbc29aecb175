"""Mentors ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import OfferTypeEnum

if TYPE_CHECKING:
    from app.modules.identity.models import User


class Mentor(BaseModelMixin, Base):
    """Mentor profile with rate card, trust tier and payout account."""

    __tablename__ = "mentors"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)

    offer_type: Mapped[OfferTypeEnum] = mapped_column(
        SAEnum(OfferTypeEnum, name="offer_type_enum", native_enum=False),
        default=OfferTypeEnum.BOTH,
        nullable=False,
    )
    access_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    hourly_rate: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    is_trusted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_bookings_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    stripe_connect_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    stripe_onboarded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    user: Mapped["User"] = relationship(back_populates="mentor_profile")

    @property
    def can_receive_payouts(self) -> bool:
        return bool(self.stripe_connect_id) and self.stripe_onboarded
