"""Daily fan-out of scraping jobs, one per department."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Protocol

from apscheduler.schedulers.blocking import BlockingScheduler

from auction_finder.departments import partition_codes
from auction_finder.errors import SchedulingError
from auction_finder.models.job import AUCTIONS_JOB, JobOptions, QueuedJob, ScrapeJob

logger = logging.getLogger(__name__)

MANUAL_PRIORITY = 1
TRIGGER_JOB_ID = "schedule-auctions"


class Queue(Protocol):
    def enqueue(self, job: ScrapeJob, options: Optional[JobOptions] = None) -> QueuedJob: ...


@dataclass
class ScheduleSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: list[SchedulingError] = field(default_factory=list)


class Scheduler:
    """
    Enqueues one auctions job per partition every day at `hour` local time.
    A failed enqueue is logged and does not stop the remaining partitions.
    """

    def __init__(
        self,
        queue: Queue,
        partitions: Optional[list[str]] = None,
        options: Optional[JobOptions] = None,
        hour: int = 2,
        timezone: str = "Europe/Paris",
    ):
        self.queue = queue
        self.partitions = partitions if partitions is not None else partition_codes()
        self.options = options or JobOptions()
        self.hour = hour
        self.timezone = timezone
        self._trigger: Optional[BlockingScheduler] = None

    def schedule_all(self, since_date: Optional[date] = None) -> ScheduleSummary:
        summary = ScheduleSummary()
        logger.info("Scheduling auctions jobs for %d partitions", len(self.partitions))
        for partition_id in self.partitions:
            summary.attempted += 1
            try:
                self.queue.enqueue(
                    ScrapeJob(job_name=AUCTIONS_JOB, partition_id=partition_id, since_date=since_date),
                    self.options,
                )
            except Exception as e:
                failure = SchedulingError(partition_id, str(e))
                summary.failed += 1
                summary.failures.append(failure)
                logger.error("%s", failure)
                continue
            summary.succeeded += 1
        logger.info(
            "Scheduling finished: %d succeeded, %d failed (of %d)",
            summary.succeeded,
            summary.failed,
            summary.attempted,
        )
        return summary

    def trigger_manual(self, partition_id: Optional[str] = None, since_date: Optional[date] = None) -> QueuedJob:
        """Enqueue one job ahead of scheduled ones. Errors propagate to the caller."""
        job = ScrapeJob(job_name=AUCTIONS_JOB, partition_id=partition_id, since_date=since_date)
        options = self.options.model_copy(update={"priority": MANUAL_PRIORITY})
        queued = self.queue.enqueue(job, options)
        logger.info("Manually enqueued job %s (partition=%s)", queued.id, job.partition_id or "all")
        return queued

    def build_trigger(self) -> BlockingScheduler:
        """Blocking scheduler running schedule_all every day at `hour`:00 in the configured timezone."""
        trigger = BlockingScheduler(timezone=self.timezone)
        trigger.add_job(
            self.schedule_all,
            "cron",
            hour=self.hour,
            minute=0,
            id=TRIGGER_JOB_ID,
            coalesce=True,
            max_instances=1,
        )
        return trigger

    def run_forever(self) -> None:
        """Block on the daily trigger until stop() or Ctrl-C."""
        self._trigger = self.build_trigger()
        logger.info("Daily trigger at %02d:00 %s", self.hour, self.timezone)
        self._trigger.start()

    def stop(self) -> None:
        if self._trigger is not None and self._trigger.running:
            self._trigger.shutdown(wait=False)
