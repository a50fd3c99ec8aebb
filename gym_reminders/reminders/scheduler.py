from __future__ import annotations

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from gym_reminders.core import Settings, get_settings
from gym_reminders.reminders.runner import ExpiryReminderRunner, run_expiry_reminder_once

logger = logging.getLogger(__name__)

JOB_ID = "expiry_reminders"


class ExpiryReminderScheduler:
    """
    APScheduler handle for the daily expiry reminder sweep.

    Built once by the composition root and stopped on shutdown.
    """

    def __init__(self, runner: ExpiryReminderRunner, settings: Settings | None = None) -> None:
        self.runner = runner
        self.settings = settings or get_settings()
        self.scheduler: AsyncIOScheduler | None = None

    def build_trigger(self) -> CronTrigger:
        return CronTrigger(
            hour=self.settings.reminder_hour,
            minute=self.settings.reminder_minute,
            timezone=self.settings.tz,
        )

    async def start(self) -> None:
        """
        Register the daily job and start the scheduler.
        """
        self.scheduler = AsyncIOScheduler(timezone=self.settings.tz)
        self.scheduler.add_job(
            self._fire,
            self.build_trigger(),
            id=JOB_ID,
            name="Daily Membership Expiry Reminders",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        self.scheduler.start()
        logger.info(
            "Expiry reminder scheduler started (daily at %02d:%02d %s)",
            self.settings.reminder_hour,
            self.settings.reminder_minute,
            self.settings.reminder_timezone,
        )

    async def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Expiry reminder scheduler stopped")

    @property
    def next_run_time(self) -> datetime | None:
        if self.scheduler is None:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    async def _fire(self) -> None:
        # Never let an exception escape: the job must fire again tomorrow
        try:
            sent = await run_expiry_reminder_once(self.runner)
        except Exception:
            logger.exception("Expiry reminder job failed")
            return
        if sent > 0:
            logger.info("Sent %s expiry reminders", sent)


async def schedule_expiry_reminder(
    runner: ExpiryReminderRunner,
    settings: Settings | None = None,
) -> ExpiryReminderScheduler:
    """
    Create and start the daily reminder schedule.

    Call exactly once per process; keep the returned handle to stop it.
    """

    handle = ExpiryReminderScheduler(runner, settings)
    await handle.start()
    return handle
