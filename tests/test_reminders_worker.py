from __future__ import annotations

from contextlib import asynccontextmanager

import pytest

import app.workers.reminders_worker as worker_module
from app.modules.reminders.service import SCAN_NAMES


def test_scan_selection_defaults_to_all(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("REMINDERS_WORKER_SCANS", raising=False)

    assert worker_module._selected_scans([]) == list(SCAN_NAMES)


def test_scan_selection_reads_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REMINDERS_WORKER_SCANS", "process-payouts, cancel-unpaid-bookings")

    assert worker_module._selected_scans([]) == ["process-payouts", "cancel-unpaid-bookings"]


def test_unknown_scan_name_stops_worker() -> None:
    with pytest.raises(SystemExit):
        worker_module._selected_scans(["nightly-cleanup"])


@pytest.mark.asyncio
async def test_run_cycle_uses_one_unit_of_work_per_scan(monkeypatch: pytest.MonkeyPatch) -> None:
    opened: list[str] = []

    @asynccontextmanager
    async def fake_scope():
        opened.append("session")
        yield object()

    class FakeService:
        async def run_scan(self, name: str) -> dict[str, int]:
            return {"checked": len(name)}

    monkeypatch.setattr(worker_module, "session_scope", fake_scope)
    monkeypatch.setattr(worker_module, "build_reminder_service", lambda session: FakeService())

    stats = await worker_module.run_cycle(["review-reminders", "process-payouts"])

    assert stats == {"review-reminders": {"checked": 16}, "process-payouts": {"checked": 15}}
    assert opened == ["session", "session"]
