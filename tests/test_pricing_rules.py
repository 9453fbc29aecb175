from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.core.enums import BookingTypeEnum, OfferTypeEnum
from app.modules.booking.pricing import calculate_payout_amounts, calculate_total_price
from app.shared.exceptions import InvalidOfferException


def make_mentor(
    offer_type: OfferTypeEnum = OfferTypeEnum.BOTH,
    access_price: int | None = 4900,
    hourly_rate: int | None = 6000,
) -> SimpleNamespace:
    return SimpleNamespace(offer_type=offer_type, access_price=access_price, hourly_rate=hourly_rate)


def test_access_booking_costs_access_price() -> None:
    assert calculate_total_price(make_mentor(), BookingTypeEnum.ACCESS) == 4900


@pytest.mark.parametrize(
    ("hourly_rate", "duration", "expected"),
    [
        (6000, 60, 6000),
        (6000, 45, 4500),
        (5000, 15, 1250),
        (1001, 30, 501),
        (999, 30, 500),
    ],
)
def test_session_price_is_prorated_and_rounded_half_up(hourly_rate: int, duration: int, expected: int) -> None:
    mentor = make_mentor(hourly_rate=hourly_rate)
    assert calculate_total_price(mentor, BookingTypeEnum.SESSION, duration) == expected


def test_free_session_costs_nothing() -> None:
    assert calculate_total_price(make_mentor(), BookingTypeEnum.SESSION, 30, is_free_session=True) == 0


def test_access_only_mentor_rejects_sessions() -> None:
    mentor = make_mentor(offer_type=OfferTypeEnum.ACCESS)
    with pytest.raises(InvalidOfferException):
        calculate_total_price(mentor, BookingTypeEnum.SESSION, 60)


def test_time_only_mentor_rejects_access() -> None:
    mentor = make_mentor(offer_type=OfferTypeEnum.TIME)
    with pytest.raises(InvalidOfferException):
        calculate_total_price(mentor, BookingTypeEnum.ACCESS)


def test_missing_rate_is_rejected() -> None:
    with pytest.raises(InvalidOfferException):
        calculate_total_price(make_mentor(access_price=None), BookingTypeEnum.ACCESS)
    with pytest.raises(InvalidOfferException):
        calculate_total_price(make_mentor(hourly_rate=None), BookingTypeEnum.SESSION, 60)


@pytest.mark.parametrize(
    ("total", "fee", "payout"),
    [(10000, 1500, 8500), (999, 149, 850), (1, 0, 1), (0, 0, 0)],
)
def test_fee_split_rounds_fee_down_and_sums_to_total(total: int, fee: int, payout: int) -> None:
    assert calculate_payout_amounts(total, 15) == (fee, payout)
    assert sum(calculate_payout_amounts(total, 15)) == total
