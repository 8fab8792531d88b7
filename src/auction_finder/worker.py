"""Single-concurrency job worker."""

import logging
import time
from typing import Callable, Optional

from auction_finder.errors import JobRejectedError
from auction_finder.models.job import AUCTIONS_JOB, QueuedJob
from auction_finder.pipeline import PipelineResult, ScrapePipeline
from auction_finder.store.job_queue import JobQueue

logger = logging.getLogger(__name__)


class Worker:
    """
    Pulls one job at a time from the queue and runs the scraping pipeline for it.
    Retries are left to the queue; rejected jobs are failed without retry.
    A job interrupted by Ctrl-C is released back to the queue.
    """

    def __init__(
        self,
        queue: JobQueue,
        pipeline: ScrapePipeline,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.queue = queue
        self.pipeline = pipeline
        self._sleep = sleep
        self._stopped = False

    def process(self, job: QueuedJob) -> PipelineResult:
        """Validate and run one job. Errors are logged with job context and re-raised."""
        payload = job.payload
        if payload.job_name != AUCTIONS_JOB:
            raise JobRejectedError(payload.job_name, AUCTIONS_JOB)
        logger.info(
            "Processing job %s (partition=%s, attempt %d/%d)",
            job.id,
            payload.partition_id or "all",
            job.attempts_made,
            job.options.attempts,
        )
        try:
            return self.pipeline.run(payload)
        except Exception:
            logger.error(
                "Job %s failed (partition=%s, attempt %d/%d)",
                job.id,
                payload.partition_id or "all",
                job.attempts_made,
                job.options.attempts,
                exc_info=True,
            )
            raise

    def run_once(self) -> bool:
        """Claim and process the next available job. Returns False when the queue is empty."""
        job = self.queue.claim_next()
        if job is None:
            return False
        try:
            self.process(job)
        except JobRejectedError as e:
            logger.error("Rejecting job %s: %s", job.id, e)
            self.queue.fail(job, str(e), retry=False)
        except Exception as e:
            self.queue.fail(job, f"{type(e).__name__}: {e}")
        except BaseException:
            # Ctrl-C or shutdown mid-job: hand the job back before unwinding
            self.queue.release(job, "interrupted")
            raise
        else:
            self.queue.complete(job)
        return True

    def stop(self) -> None:
        self._stopped = True

    def run_forever(self, poll_interval: float = 5.0, max_jobs: Optional[int] = None) -> int:
        """Process jobs until stop() or Ctrl-C. Returns the number of jobs processed."""
        processed = 0
        logger.info("Worker started (poll every %.1fs)", poll_interval)
        try:
            while not self._stopped and (max_jobs is None or processed < max_jobs):
                if self.run_once():
                    processed += 1
                else:
                    self._sleep(poll_interval)
        except KeyboardInterrupt:
            logger.info("Worker interrupted")
        logger.info("Worker stopped after %d job(s)", processed)
        return processed
