"""Recurring refresh trigger built on APScheduler."""

import datetime
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..application.exceptions import ConfigurationError
from ..application.service import RefreshCoordinator

_JOB_ID = "geoip_weekly_refresh"


class RefreshScheduler:
    """
    Fires the coordinator's refresh on a cron schedule.

    The job runs as a task on the event loop and only calls
    `trigger_refresh`, which coalesces overlapping runs itself.
    """

    def __init__(
        self,
        coordinator: RefreshCoordinator,
        crontab: str,
        timezone: str,
    ):
        """
        Initializes the scheduler.

        Args:
            coordinator: The coordinator whose refresh is triggered.
            crontab: A five-field cron expression. Use day names
                     ('0 3 * * tue'); APScheduler numbers weekdays from
                     Monday=0.
            timezone: An IANA timezone name, e.g. 'Asia/Dhaka'.

        Raises:
            ConfigurationError: If the expression or timezone is invalid.
        """

        self.logger = logging.getLogger(self.__class__.__name__)
        self.coordinator = coordinator
        try:
            self.trigger = CronTrigger.from_crontab(crontab, timezone=timezone)
        except (ValueError, LookupError) as e:
            raise ConfigurationError(
                f"Invalid refresh schedule {crontab!r} in {timezone!r}: {e}"
            ) from e
        self._scheduler = AsyncIOScheduler(timezone=self.trigger.timezone)

    async def run_refresh(self):
        """The scheduled job body."""
        self.logger.info("Running scheduled database refresh...")
        outcome = await self.coordinator.trigger_refresh()
        self.logger.info(f"Scheduled database refresh finished: {outcome.value}")

    def start(self):
        """Registers the job and starts the scheduler on the running loop."""
        self._scheduler.add_job(
            self.run_refresh,
            trigger=self.trigger,
            id=_JOB_ID,
            name="Weekly GeoIP database refresh",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        self.logger.info(f"Database refresh scheduled; next run at {self.next_run_time}")

    def shutdown(self):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def next_run_time(self) -> Optional[datetime.datetime]:
        job = self._scheduler.get_job(_JOB_ID)
        if job is not None and job.next_run_time is not None:
            return job.next_run_time
        now = datetime.datetime.now(self.trigger.timezone)
        return self.trigger.get_next_fire_time(None, now)
