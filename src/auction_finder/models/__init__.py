"""Data models for scraped, persisted and queued records."""

from auction_finder.models.job import JobOptions, QueuedJob, ScrapeJob
from auction_finder.models.opportunity import AuctionRecord
from auction_finder.models.page_state import AddressData, LotData, NextData
from auction_finder.models.raw import AuctionExtra, Listing, RawOpportunity

__all__ = [
    "AddressData",
    "AuctionExtra",
    "AuctionRecord",
    "JobOptions",
    "Listing",
    "LotData",
    "NextData",
    "QueuedJob",
    "RawOpportunity",
    "ScrapeJob",
]
