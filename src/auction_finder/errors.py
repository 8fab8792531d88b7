"""Exception hierarchy for the scraping pipeline."""

from typing import Optional


class AuctionFinderError(Exception):
    """Base class for all pipeline errors."""


class NavigationError(AuctionFinderError):
    """Page load failed or returned a non-200 status. Fails the whole job."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"Navigation to {url} failed: {reason}")


class ExtractionFailure(AuctionFinderError):
    """One listing could not be parsed. The listing is skipped, the batch continues."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason} ({url})")


class GeocodingFailure(AuctionFinderError):
    """Address lookup failed after all retries."""

    def __init__(self, address: str, reason: str):
        self.address = address
        self.reason = reason
        super().__init__(f"Geocoding failed for {address!r}: {reason}")


class PersistenceError(AuctionFinderError):
    """
    A batch upsert failed.
    Batches before `batch_index` are already committed and stay persisted.
    """

    def __init__(self, batch_index: int, committed: int, reason: str):
        self.batch_index = batch_index
        self.committed = committed
        self.reason = reason
        super().__init__(
            f"Upsert of batch {batch_index} failed after {committed} rows committed: {reason}"
        )


class SchedulingError(AuctionFinderError):
    """Enqueueing the job for one partition failed."""

    def __init__(self, partition_id: str, reason: str):
        self.partition_id = partition_id
        self.reason = reason
        super().__init__(f"Failed to enqueue job for partition {partition_id}: {reason}")


class JobRejectedError(AuctionFinderError):
    """Job payload names a pipeline this worker does not run."""

    def __init__(self, job_name: str, expected: str):
        self.job_name = job_name
        self.expected = expected
        super().__init__(f"Unsupported job name: {job_name!r}. Only {expected!r} is supported.")
