"""Tests for the SQLite job queue."""

from pathlib import Path

import pytest

from auction_finder.models.job import JobOptions, ScrapeJob
from auction_finder.store import JobQueue


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue(temp_db: Path, clock: FakeClock) -> JobQueue:
    return JobQueue(temp_db, clock=clock)


def _job(partition: str | None = "35") -> ScrapeJob:
    return ScrapeJob(job_name="auctions", partition_id=partition)


class TestEnqueueAndClaim:
    """Tests for enqueue / claim_next."""

    def test_claim_returns_payload(self, queue: JobQueue) -> None:
        queued = queue.enqueue(_job("2A"))
        claimed = queue.claim_next()
        assert claimed.id == queued.id
        assert claimed.payload.partition_id == "2A"
        assert claimed.state == "active"
        assert claimed.attempts_made == 1

    def test_empty_queue(self, queue: JobQueue) -> None:
        assert queue.claim_next() is None

    def test_fifo_within_priority(self, queue: JobQueue, clock: FakeClock) -> None:
        first = queue.enqueue(_job("01"))
        clock.now += 1
        queue.enqueue(_job("02"))
        assert queue.claim_next().id == first.id

    def test_higher_priority_first(self, queue: JobQueue, clock: FakeClock) -> None:
        queue.enqueue(_job("01"))
        clock.now += 1
        manual = queue.enqueue(_job("35"), JobOptions(priority=1))
        assert queue.claim_next().id == manual.id

    def test_claimed_job_not_claimed_twice(self, queue: JobQueue) -> None:
        queue.enqueue(_job())
        assert queue.claim_next() is not None
        assert queue.claim_next() is None

    def test_options_round_trip(self, queue: JobQueue) -> None:
        queue.enqueue(_job(), JobOptions(attempts=5, backoff_delay_ms=100))
        claimed = queue.claim_next()
        assert claimed.options.attempts == 5
        assert claimed.options.backoff_delay_ms == 100


class TestRetries:
    """Tests for fail() with bounded attempts and exponential backoff."""

    def test_exponential_backoff(self, queue: JobQueue, clock: FakeClock) -> None:
        """Delays of 5s then 10s; the third failure is final."""
        queue.enqueue(_job())
        job = queue.claim_next()
        assert queue.fail(job, "boom") is True
        assert queue.get(job.id).available_at == clock.now + 5.0
        assert queue.claim_next() is None

        clock.now += 5.0
        job = queue.claim_next()
        assert job.attempts_made == 2
        assert queue.fail(job, "boom") is True
        assert queue.get(job.id).available_at == clock.now + 10.0

        clock.now += 10.0
        job = queue.claim_next()
        assert job.attempts_made == 3
        assert queue.fail(job, "boom again") is False
        final = queue.get(job.id)
        assert final.state == "failed"
        assert final.last_error == "boom again"

    def test_fail_without_retry(self, queue: JobQueue) -> None:
        queue.enqueue(_job())
        job = queue.claim_next()
        assert queue.fail(job, "rejected", retry=False) is False
        assert queue.get(job.id).state == "failed"

    def test_complete(self, queue: JobQueue) -> None:
        queue.enqueue(_job())
        job = queue.claim_next()
        queue.complete(job)
        assert queue.get(job.id).state == "completed"


class TestRetention:
    """Pruning of finished jobs."""

    def test_completed_jobs_capped_by_count(self, queue: JobQueue, clock: FakeClock) -> None:
        options = JobOptions(remove_on_complete_count=2)
        for i in range(4):
            queue.enqueue(_job(f"{i + 1:02d}"), options)
        for _ in range(4):
            clock.now += 1
            queue.complete(queue.claim_next())
        assert queue.counts()["completed"] == 2

    def test_old_completed_jobs_removed(self, queue: JobQueue, clock: FakeClock) -> None:
        queue.enqueue(_job("01"))
        old = queue.claim_next()
        queue.complete(old)
        clock.now += 8 * 24 * 3600
        queue.enqueue(_job("02"))
        queue.complete(queue.claim_next())
        assert queue.get(old.id) is None

    def test_old_failed_jobs_removed(self, queue: JobQueue, clock: FakeClock) -> None:
        queue.enqueue(_job("01"))
        old = queue.claim_next()
        queue.fail(old, "x", retry=False)
        clock.now += 31 * 24 * 3600
        queue.enqueue(_job("02"))
        queue.fail(queue.claim_next(), "y", retry=False)
        assert queue.get(old.id) is None


class TestCounts:
    def test_counts_per_state(self, queue: JobQueue) -> None:
        queue.enqueue(_job("01"))
        queue.enqueue(_job("02"))
        queue.enqueue(_job("03"))
        queue.complete(queue.claim_next())
        job = queue.claim_next()
        queue.fail(job, "boom")
        counts = queue.counts()
        assert counts["waiting"] == 1
        assert counts["delayed"] == 1
        assert counts["completed"] == 1
        assert counts["failed"] == 0
        assert counts["active"] == 0


class TestStalledJobs:
    """Recovery of jobs left active by a worker that went away."""

    def test_stalled_job_is_claimed_again(self, temp_db: Path, clock: FakeClock) -> None:
        queue = JobQueue(temp_db, clock=clock, stalled_after=60)
        queue.enqueue(_job())
        first = queue.claim_next()
        assert queue.claim_next() is None
        clock.now += 61
        again = queue.claim_next()
        assert again.id == first.id
        assert again.attempts_made == 2
        assert again.last_error == "stalled"

    def test_recent_active_job_left_alone(self, temp_db: Path, clock: FakeClock) -> None:
        queue = JobQueue(temp_db, clock=clock, stalled_after=60)
        queue.enqueue(_job())
        queue.claim_next()
        clock.now += 30
        assert queue.claim_next() is None
        assert queue.counts()["active"] == 1

    def test_stalled_job_without_attempts_left_fails(self, temp_db: Path, clock: FakeClock) -> None:
        queue = JobQueue(temp_db, clock=clock, stalled_after=60)
        queued = queue.enqueue(_job(), JobOptions(attempts=1))
        queue.claim_next()
        clock.now += 61
        assert queue.claim_next() is None
        assert queue.get(queued.id).state == "failed"

    def test_release_returns_job_without_using_an_attempt(self, queue: JobQueue) -> None:
        queue.enqueue(_job())
        job = queue.claim_next()
        queue.release(job, "interrupted")
        released = queue.get(job.id)
        assert released.state == "waiting"
        assert released.attempts_made == 0
        assert released.last_error == "interrupted"
        assert queue.claim_next().id == job.id
