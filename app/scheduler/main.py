"""
Scheduler
Daily installment execution in the operating timezone
"""

import asyncio
import logging

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import settings
from app.core.logging import setup_logging
from app.scheduler.jobs import INSTALLMENT_JOB_NAME, run_due_installments_job

logger = logging.getLogger(__name__)


def parse_run_time(value: str) -> tuple:
    """'HH:MM' -> (hour, minute)"""
    try:
        hour_text, minute_text = value.strip().split(":")
        hour, minute = int(hour_text), int(minute_text)
    except ValueError:
        raise ValueError(f"SCHEDULER_RUN_TIME must be HH:MM, got {value!r}") from None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"SCHEDULER_RUN_TIME out of range: {value!r}")
    return hour, minute


class InstallmentScheduler:
    """
    Runs the installment job once a day at SCHEDULER_RUN_TIME (TIMEZONE)
    """

    def __init__(self, run_time: str = None, timezone: str = None):
        """Initialize scheduler"""
        self.timezone = timezone or settings.TIMEZONE
        self.hour, self.minute = parse_run_time(run_time or settings.SCHEDULER_RUN_TIME)
        self.scheduler = AsyncIOScheduler(timezone=pytz.timezone(self.timezone))

    async def installment_job(self):
        await run_due_installments_job(triggered_by="SCHEDULE")

    def start(self):
        """Start the scheduler"""
        logger.info("🚀 Starting installment scheduler...")

        self.scheduler.add_job(
            self.installment_job,
            CronTrigger(hour=self.hour, minute=self.minute, timezone=pytz.timezone(self.timezone)),
            id=INSTALLMENT_JOB_NAME,
            name="Execute Due Installments",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        for job in self.scheduler.get_jobs():
            logger.info(f"  • {job.name} - Next run: {job.next_run_time}")

    @property
    def running(self) -> bool:
        return bool(getattr(self.scheduler, "running", False))

    def stop(self):
        """Stop the scheduler"""
        logger.info("🛑 Stopping scheduler...")
        if self.running:
            self.scheduler.shutdown(wait=False)
        logger.info("✅ Scheduler stopped")


async def main():
    """Standalone scheduler process"""
    setup_logging(settings.LOG_LEVEL)
    scheduler = InstallmentScheduler()
    scheduler.start()

    try:
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, SystemExit):
        scheduler.stop()


if __name__ == "__main__":
    asyncio.run(main())
