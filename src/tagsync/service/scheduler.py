"""Daily trigger for synchronization runs."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from .runner import SyncService

LOGGER = logging.getLogger(__name__)

JOB_ID = "tagsync-daily-sync"


def daily_trigger(daily_at: str, timezone: Optional[tzinfo] = None) -> CronTrigger:
    """Build a cron trigger firing every day at ``daily_at`` (``HH:MM``)."""
    hours, minutes = daily_at.split(":", 1)
    return CronTrigger(hour=int(hours), minute=int(minutes), timezone=timezone)


class DailyScheduler:
    """Invoke the service once a day at a fixed local time."""

    def __init__(
        self,
        service: SyncService,
        daily_at: str,
        *,
        scheduler: Optional[BaseScheduler] = None,
        timezone: Optional[tzinfo] = None,
    ) -> None:
        self._service = service
        self._trigger = daily_trigger(daily_at, timezone)
        self._scheduler = scheduler or BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self.run_pending,
            trigger=self._trigger,
            id=JOB_ID,
            name="daily tag sync",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def next_run(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Return the next fire time after ``now`` (defaults to the current time)."""
        current = now or datetime.now(self._trigger.timezone)
        return self._trigger.get_next_fire_time(None, current)

    def start(self) -> None:
        """Start the background scheduler."""
        if self._scheduler.running:
            raise RuntimeError("DailyScheduler is already running.")
        self._scheduler.start()
        next_run = self.next_run()
        LOGGER.info(
            "Daily sync scheduled; next run at %s", next_run.isoformat() if next_run else "never"
        )

    def stop(self) -> None:
        """Shut the scheduler down without waiting for a run in progress."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    def run_pending(self) -> None:
        """Run one scheduled sync, logging instead of raising on failure."""
        try:
            self._service.run()
        except Exception:
            LOGGER.exception("Scheduled sync failed")


__all__ = ["DailyScheduler", "JOB_ID", "daily_trigger"]
