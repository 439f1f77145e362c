"""Cron-like scheduler loop built on asyncio."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog
from croniter import croniter

LOGGER = structlog.get_logger(__name__)

DEFAULT_CRON = "0 3 * * *"


def seconds_until_next(cron: str, now: datetime) -> float:
    """Return the delay until the next time ``cron`` fires after ``now``."""
    schedule = croniter(cron, now)
    upcoming: datetime = schedule.get_next(datetime)
    return max(0.0, (upcoming - now).total_seconds())


async def run_schedule_loop(
    settings: Dict[str, object],
    *,
    interval_seconds: Optional[int] = None,
    ticks: Optional[int] = None,
) -> None:
    """Run reconciliation repeatedly, waiting for the cron schedule between runs.

    ``interval_seconds`` overrides the cron delay when given.
    """
    from auditstore.main import run_reconcile

    cron = str(settings.get("scheduler", {}).get("cron", DEFAULT_CRON))
    tick = 0
    while ticks is None or tick < ticks:
        summary = await run_reconcile(settings)
        LOGGER.info("scheduled_run_complete", tick=tick, removed=summary.num_removed)
        tick += 1
        if ticks is not None and tick >= ticks:
            break
        delay = interval_seconds if interval_seconds is not None else seconds_until_next(cron, datetime.now(timezone.utc))
        LOGGER.info("scheduler_sleep", seconds=delay)
        await asyncio.sleep(delay)
