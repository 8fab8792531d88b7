"""Local storage for auctions, run history and the job queue."""

from auction_finder.store.job_queue import JobQueue
from auction_finder.store.sqlite_store import OpportunityStore, RunRecord

__all__ = ["JobQueue", "OpportunityStore", "RunRecord"]
