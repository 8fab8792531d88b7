"""Durable job queue in SQLite with bounded retries, backoff and retention."""

import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from auction_finder.models.job import JOB_STATES, JobOptions, QueuedJob, ScrapeJob
from auction_finder.store.sqlite_store import connect, ensure_schema

logger = logging.getLogger(__name__)


class JobQueue:
    """
    Queue of ScrapeJob payloads stored in the `jobs` table.

    Jobs are claimed highest priority first, then oldest. A failed job goes back
    to `waiting` with a backoff delay until its attempts are used up, then stays
    `failed`. Finished jobs are pruned according to their retention options.
    Jobs left `active` longer than `stalled_after` seconds (worker killed
    mid-job) are put back in `waiting` by the next claim.
    """

    def __init__(
        self,
        db_path: str | Path = "auction_finder.db",
        name: str = "auctions",
        clock: Callable[[], float] = time.time,
        stalled_after: float = 6 * 3600,
    ):
        self._db_path = Path(db_path)
        self.name = name
        self._clock = clock
        self.stalled_after = stalled_after
        ensure_schema(self._db_path)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = connect(self._db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _from_row(self, row: sqlite3.Row) -> QueuedJob:
        return QueuedJob(
            id=row["id"],
            name=row["name"],
            payload=ScrapeJob.model_validate(json.loads(row["payload"])),
            options=JobOptions.model_validate(json.loads(row["options"])),
            state=row["state"],
            attempts_made=row["attempts_made"],
            available_at=row["available_at"],
            last_error=row["last_error"],
            created_at=row["created_at"],
            finished_at=row["finished_at"],
        )

    def enqueue(self, job: ScrapeJob, options: Optional[JobOptions] = None) -> QueuedJob:
        """Add a job, available immediately."""
        options = options or JobOptions()
        now = self._clock()
        with self._connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO jobs (name, payload, options, state, priority, attempts_made, available_at, created_at)
                VALUES (?, ?, ?, 'waiting', ?, 0, ?, ?)
                """,
                (
                    self.name,
                    json.dumps(job.to_message()),
                    options.model_dump_json(),
                    options.priority,
                    now,
                    now,
                ),
            )
            job_id = cursor.lastrowid
        logger.debug("Enqueued job %s (partition=%s)", job_id, job.partition_id)
        return QueuedJob(
            id=job_id or 0,
            name=self.name,
            payload=job,
            options=options,
            available_at=now,
            created_at=now,
        )

    def claim_next(self) -> Optional[QueuedJob]:
        """Move the next available waiting job to `active` and return it."""
        now = self._clock()
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            self._recover_stalled(conn, now)
            row = conn.execute(
                """
                SELECT * FROM jobs
                WHERE name = ? AND state = 'waiting' AND available_at <= ?
                ORDER BY priority DESC, available_at ASC, id ASC
                LIMIT 1
                """,
                (self.name, now),
            ).fetchone()
            if row is None:
                return None
            conn.execute(
                "UPDATE jobs SET state = 'active', attempts_made = attempts_made + 1, locked_at = ? WHERE id = ?",
                (now, row["id"]),
            )
            claimed = conn.execute("SELECT * FROM jobs WHERE id = ?", (row["id"],)).fetchone()
        return self._from_row(claimed)

    def _recover_stalled(self, conn: sqlite3.Connection, now: float) -> None:
        rows = conn.execute(
            "SELECT id, options, attempts_made FROM jobs WHERE name = ? AND state = 'active' AND locked_at < ?",
            (self.name, now - self.stalled_after),
        ).fetchall()
        for row in rows:
            options = JobOptions.model_validate(json.loads(row["options"]))
            if row["attempts_made"] < options.attempts:
                conn.execute(
                    "UPDATE jobs SET state = 'waiting', available_at = ?, locked_at = NULL, last_error = 'stalled' WHERE id = ?",
                    (now, row["id"]),
                )
                logger.warning("Job %s stalled, moved back to waiting", row["id"])
            else:
                conn.execute(
                    "UPDATE jobs SET state = 'failed', finished_at = ?, locked_at = NULL, last_error = 'stalled' WHERE id = ?",
                    (now, row["id"]),
                )
                logger.warning("Job %s stalled with no attempts left, marked failed", row["id"])

    def release(self, job: QueuedJob, reason: str = "interrupted") -> None:
        """Put an active job back in `waiting`, available now, without using up an attempt."""
        now = self._clock()
        with self._connection() as conn:
            conn.execute(
                """
                UPDATE jobs SET state = 'waiting', available_at = ?, locked_at = NULL, last_error = ?,
                    attempts_made = MAX(attempts_made - 1, 0)
                WHERE id = ? AND state = 'active'
                """,
                (now, reason, job.id),
            )
        logger.info("Job %s released back to the queue (%s)", job.id, reason)

    def complete(self, job: QueuedJob) -> None:
        now = self._clock()
        with self._connection() as conn:
            conn.execute(
                "UPDATE jobs SET state = 'completed', finished_at = ?, last_error = NULL WHERE id = ?",
                (now, job.id),
            )
            self._prune_completed(conn, job.options, now)

    def fail(self, job: QueuedJob, error: str, retry: bool = True) -> bool:
        """
        Record a failed attempt. Returns True when the job was rescheduled,
        False when it is now permanently failed.
        """
        now = self._clock()
        with self._connection() as conn:
            row = conn.execute("SELECT attempts_made FROM jobs WHERE id = ?", (job.id,)).fetchone()
            attempts_made = row["attempts_made"] if row else job.attempts_made
            if retry and attempts_made < job.options.attempts:
                delay = job.options.backoff_seconds(attempts_made)
                conn.execute(
                    "UPDATE jobs SET state = 'waiting', available_at = ?, last_error = ? WHERE id = ?",
                    (now + delay, error, job.id),
                )
                logger.info(
                    "Job %s attempt %d/%d failed, retrying in %.1fs",
                    job.id,
                    attempts_made,
                    job.options.attempts,
                    delay,
                )
                return True
            conn.execute(
                "UPDATE jobs SET state = 'failed', finished_at = ?, last_error = ? WHERE id = ?",
                (now, error, job.id),
            )
            self._prune_failed(conn, job.options, now)
        logger.warning("Job %s failed permanently after %d attempt(s): %s", job.id, attempts_made, error)
        return False

    def _prune_completed(self, conn: sqlite3.Connection, options: JobOptions, now: float) -> None:
        conn.execute(
            "DELETE FROM jobs WHERE name = ? AND state = 'completed' AND finished_at < ?",
            (self.name, now - options.remove_on_complete_age_s),
        )
        conn.execute(
            """
            DELETE FROM jobs WHERE name = ? AND state = 'completed' AND id NOT IN (
                SELECT id FROM jobs WHERE name = ? AND state = 'completed'
                ORDER BY finished_at DESC, id DESC LIMIT ?
            )
            """,
            (self.name, self.name, options.remove_on_complete_count),
        )

    def _prune_failed(self, conn: sqlite3.Connection, options: JobOptions, now: float) -> None:
        conn.execute(
            "DELETE FROM jobs WHERE name = ? AND state = 'failed' AND finished_at < ?",
            (self.name, now - options.remove_on_fail_age_s),
        )

    def get(self, job_id: int) -> Optional[QueuedJob]:
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        return self._from_row(row) if row else None

    def counts(self) -> dict[str, int]:
        """Number of jobs per state (waiting, active, completed, failed, delayed)."""
        now = self._clock()
        result = {state: 0 for state in JOB_STATES}
        result["delayed"] = 0
        with self._connection() as conn:
            for row in conn.execute(
                "SELECT state, available_at > ? AS delayed, COUNT(*) AS n FROM jobs WHERE name = ? GROUP BY state, delayed",
                (now, self.name),
            ):
                if row["state"] == "waiting" and row["delayed"]:
                    result["delayed"] += row["n"]
                else:
                    result[row["state"]] = result.get(row["state"], 0) + row["n"]
        return result
