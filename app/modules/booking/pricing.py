"""Booking price and fee split calculation."""

from __future__ import annotations

from typing import Protocol

from app.core.enums import BookingTypeEnum, OfferTypeEnum
from app.shared.exceptions import InvalidOfferException


class RateCard(Protocol):
    offer_type: OfferTypeEnum
    access_price: int | None
    hourly_rate: int | None


def _offers(offer_type: OfferTypeEnum, booking_type: BookingTypeEnum) -> bool:
    match offer_type:
        case OfferTypeEnum.ACCESS:
            return booking_type == BookingTypeEnum.ACCESS
        case OfferTypeEnum.TIME:
            return booking_type == BookingTypeEnum.SESSION
        case OfferTypeEnum.BOTH:
            return True
    raise InvalidOfferException(f"Unknown offer type: {offer_type}")


def calculate_total_price(
    mentor: RateCard,
    booking_type: BookingTypeEnum,
    duration_minutes: int | None = None,
    *,
    is_free_session: bool = False,
) -> int:
    """Return total price in integer cents."""
    if not _offers(mentor.offer_type, booking_type):
        if booking_type == BookingTypeEnum.ACCESS:
            raise InvalidOfferException("This mentor only offers sessions, not access")
        raise InvalidOfferException("This mentor only offers access, not sessions")

    if booking_type == BookingTypeEnum.ACCESS:
        if not mentor.access_price:
            raise InvalidOfferException("Access price not set for this mentor")
        return mentor.access_price

    if is_free_session:
        return 0
    if not mentor.hourly_rate or not duration_minutes:
        raise InvalidOfferException("Missing session pricing information")
    # hourly_rate * duration / 60 rounded half-up, kept in integers
    return (mentor.hourly_rate * duration_minutes * 2 + 60) // 120


def calculate_payout_amounts(total_price: int, platform_fee_percent: int) -> tuple[int, int]:
    """Split total into (platform_fee, mentor_payout); fee rounds down."""
    platform_fee = total_price * platform_fee_percent // 100
    return platform_fee, total_price - platform_fee
