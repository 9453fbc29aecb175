from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from types import SimpleNamespace
from uuid import uuid4

import pytest

import app.modules.scheduling.service as scheduling_service_module
from app.modules.scheduling.availability import TimeWindow, resolve_start_times
from app.modules.scheduling.service import SchedulingService, validate_duration
from app.shared.exceptions import ValidationException

DAY = date(2026, 3, 10)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 10, hour, minute, tzinfo=UTC)


def test_existing_booking_splits_available_window() -> None:
    slots = resolve_start_times(
        DAY,
        60,
        available=[TimeWindow(at(9), at(12))],
        busy=[TimeWindow(at(10), at(11))],
    )

    assert slots == ["09:00", "11:00"]


def test_step_is_duration_capped_at_thirty_minutes() -> None:
    short = resolve_start_times(DAY, 15, available=[TimeWindow(at(9), at(10))], busy=[])
    long = resolve_start_times(DAY, 90, available=[TimeWindow(at(9), at(11))], busy=[])

    assert short == ["09:00", "09:15", "09:30", "09:45"]
    assert long == ["09:00", "09:30"]


def test_blocked_time_is_excluded() -> None:
    slots = resolve_start_times(
        DAY,
        30,
        available=[TimeWindow(at(14), at(16))],
        busy=[TimeWindow(at(15), at(15, 30))],
    )

    assert slots == ["14:00", "14:30", "15:30"]


def test_overlapping_windows_are_deduplicated_and_sorted() -> None:
    slots = resolve_start_times(
        DAY,
        30,
        available=[TimeWindow(at(10), at(11)), TimeWindow(at(9), at(10, 30))],
        busy=[],
    )

    assert slots == ["09:00", "09:30", "10:00", "10:30"]


def test_past_start_times_are_dropped() -> None:
    slots = resolve_start_times(
        DAY,
        30,
        available=[TimeWindow(at(9), at(11))],
        busy=[],
        not_before=at(9, 45),
    )

    assert slots == ["10:00", "10:30"]


def test_no_availability_yields_empty_list() -> None:
    assert resolve_start_times(DAY, 60, available=[], busy=[]) == []


@pytest.mark.parametrize("duration", [14, 241, 0])
def test_duration_outside_bounds_is_rejected(duration: int) -> None:
    with pytest.raises(ValidationException):
        validate_duration(duration)


class FakeSchedulingRepository:
    """Applies the same range filters as the SQL queries."""

    def __init__(self, available: list, blocked: list, bookings: list) -> None:
        self.available = available
        self.blocked = blocked
        self.bookings = bookings

    async def list_available_slots(self, mentor_id, range_start, range_end) -> list:
        return [item for item in self.available if item.start_at < range_end and item.end_at > range_start]

    async def list_blocked_slots(self, mentor_id, range_start, range_end) -> list:
        return [item for item in self.blocked if item.start_at < range_end and item.end_at > range_start]

    async def list_active_sessions(self, mentor_id, range_start, range_end) -> list:
        return [item for item in self.bookings if range_start <= item.scheduled_at < range_end]


def make_scheduling_service(available: list, blocked: list, bookings: list) -> SchedulingService:
    return SchedulingService(FakeSchedulingRepository(available, blocked, bookings), mentors_repository=None)


@pytest.fixture
def early_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(scheduling_service_module, "utc_now", lambda: at(0))


@pytest.mark.asyncio
@pytest.mark.usefixtures("early_clock")
async def test_booking_just_after_midnight_blocks_late_start() -> None:
    overnight = SimpleNamespace(start_at=at(22), end_at=at(22) + timedelta(hours=4), is_free_session=False)
    next_morning = SimpleNamespace(id=uuid4(), scheduled_at=at(0) + timedelta(days=1), duration_minutes=60)
    service = make_scheduling_service([overnight], [], [next_morning])

    result = await service.get_available_times(uuid4(), DAY, 60)

    assert result.slots == ["22:00", "22:30", "23:00"]


@pytest.mark.asyncio
@pytest.mark.usefixtures("early_clock")
async def test_block_just_after_midnight_blocks_late_start() -> None:
    overnight = SimpleNamespace(start_at=at(22), end_at=at(22) + timedelta(hours=4), is_free_session=False)
    blocked = SimpleNamespace(
        start_at=at(0) + timedelta(days=1, minutes=15),
        end_at=at(0) + timedelta(days=1, hours=1),
    )
    service = make_scheduling_service([overnight], [blocked], [])

    result = await service.get_available_times(uuid4(), DAY, 60)

    assert result.slots == ["22:00", "22:30", "23:00"]


@pytest.mark.asyncio
@pytest.mark.usefixtures("early_clock")
async def test_booking_being_moved_does_not_block_itself() -> None:
    morning = SimpleNamespace(start_at=at(9), end_at=at(11), is_free_session=False)
    moving = SimpleNamespace(id=uuid4(), scheduled_at=at(9), duration_minutes=60)
    service = make_scheduling_service([morning], [], [moving])

    await service.ensure_bookable(uuid4(), at(9, 30), 60, exclude_booking_id=moving.id)

    blocked = await service.get_available_times(uuid4(), DAY, 60)
    assert blocked.slots == ["10:00"]
