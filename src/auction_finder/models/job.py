"""Queue payloads and durable job rows."""

from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auction_finder.departments import normalize_department

AUCTIONS_JOB = "auctions"

JOB_STATES = ("waiting", "active", "completed", "failed")


class ScrapeJob(BaseModel):
    """
    Message placed on the queue for one scraping run.
    Accepts the camelCase wire form ({"jobName": "auctions", "partitionId": 35}).
    """

    model_config = ConfigDict(populate_by_name=True)

    job_name: str = Field(..., alias="jobName")
    partition_id: Optional[str] = Field(default=None, alias="partitionId")
    since_date: Optional[date] = Field(default=None, alias="sinceDate")

    @field_validator("partition_id", mode="before")
    @classmethod
    def _normalize_partition(cls, value: Union[str, int, None]) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        code = normalize_department(value)
        if code is None:
            raise ValueError(f"Invalid partition id: {value!r}")
        return code

    def to_message(self) -> dict:
        """camelCase dict for the queue payload."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobOptions(BaseModel):
    """Retry, backoff and retention policy attached to an enqueued job."""

    attempts: int = Field(default=3, ge=1)
    backoff_type: str = "exponential"  # exponential | fixed
    backoff_delay_ms: int = 5_000
    remove_on_complete_count: int = 100
    remove_on_complete_age_s: int = 7 * 24 * 3600
    remove_on_fail_age_s: int = 30 * 24 * 3600
    priority: int = 0  # higher runs first

    def backoff_seconds(self, attempts_made: int) -> float:
        """Delay before the next attempt, given how many attempts have already failed."""
        base = self.backoff_delay_ms / 1000
        if self.backoff_type == "exponential":
            return base * (2 ** max(attempts_made - 1, 0))
        return base


class QueuedJob(BaseModel):
    """A row of the durable job queue."""

    id: int
    name: str
    payload: ScrapeJob
    options: JobOptions = Field(default_factory=JobOptions)
    state: str = "waiting"
    attempts_made: int = 0
    available_at: float = 0.0
    last_error: Optional[str] = None
    created_at: float = 0.0
    finished_at: Optional[float] = None

    @property
    def attempts_left(self) -> int:
        return max(self.options.attempts - self.attempts_made, 0)
