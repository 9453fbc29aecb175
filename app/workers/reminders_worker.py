"""Executable worker for scheduled reminder and payout scans."""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from app.core.database import session_scope
from app.modules.reminders.service import SCAN_NAMES, build_reminder_service

logger = logging.getLogger(__name__)


def _selected_scans(argv: list[str]) -> list[str]:
    names = argv or [
        name.strip() for name in os.getenv("REMINDERS_WORKER_SCANS", "").split(",") if name.strip()
    ]
    if not names:
        return list(SCAN_NAMES)
    unknown = sorted(set(names) - set(SCAN_NAMES))
    if unknown:
        raise SystemExit(f"Unknown scans: {', '.join(unknown)}")
    return names


async def run_cycle(scan_names: list[str]) -> dict[str, dict[str, int]]:
    """Run each scan in its own DB transaction."""
    stats: dict[str, dict[str, int]] = {}
    for name in scan_names:
        async with session_scope() as session:
            stats[name] = await build_reminder_service(session).run_scan(name)
    return stats


async def main() -> None:
    """Run once or keep polling according to worker mode."""
    logging.basicConfig(level=os.getenv("REMINDERS_WORKER_LOG_LEVEL", "INFO"))
    mode = os.getenv("REMINDERS_WORKER_MODE", "once").strip().lower()
    poll_seconds = int(os.getenv("REMINDERS_WORKER_POLL_SECONDS", "300"))
    scan_names = _selected_scans(sys.argv[1:])

    if mode == "once":
        stats = await run_cycle(scan_names)
        logger.info("Reminders worker stats: %s", stats)
        return

    while True:
        try:
            stats = await run_cycle(scan_names)
            logger.info("Reminders worker stats: %s", stats)
        except Exception:
            logger.exception("Reminders worker cycle failed")
        await asyncio.sleep(poll_seconds)


if __name__ == "__main__":
    asyncio.run(main())
