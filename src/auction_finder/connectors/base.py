"""Abstract base class for auction source connectors."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from auction_finder.browser.session import BrowserSession
from auction_finder.models.raw import Listing, RawOpportunity

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of extracting a list of detail pages."""

    opportunities: list[RawOpportunity] = field(default_factory=list)
    failed: int = 0

    @property
    def extracted(self) -> int:
        return len(self.opportunities)


class BaseConnector(ABC):
    """
    Standard interface for browser-driven auction sources.
    Connectors discover listing URLs on a results page, then extract each detail page.
    """

    source_id: str = ""

    @abstractmethod
    def listing_url(self, partition_id: Optional[str] = None) -> str:
        """
        Results page URL, restricted to one partition when given.
        """
        pass

    @abstractmethod
    def discover(self, session: BrowserSession) -> list[Listing]:
        """
        Collect listing URLs from the already-opened results page.
        """
        pass

    @abstractmethod
    def extract(self, session: BrowserSession, url: str) -> RawOpportunity:
        """
        Parse one detail page. Raises ExtractionFailure when the page has no usable record.
        """
        pass

    @abstractmethod
    def extract_batch(self, session: BrowserSession, urls: list[str]) -> BatchResult:
        """
        Parse many detail pages, counting per-listing failures.
        """
        pass

    def open_listing_page(self, session: BrowserSession, partition_id: Optional[str] = None) -> None:
        """Navigate to the results page and get it ready for discovery."""
        url = self.listing_url(partition_id)
        logger.info("Opening %s listing page %s", self.source_id, url)
        session.navigate(url)
        session.handle_cookie_consent()
        session.wait_for_ready()

    def fetch_all(self, session: BrowserSession, partition_id: Optional[str] = None) -> tuple[int, BatchResult]:
        """
        Open the results page, discover and extract everything.
        Returns (listings found, extraction result).
        """
        self.open_listing_page(session, partition_id)
        listings = self.discover(session)
        if not listings:
            logger.info("No listings found for %s (partition=%s)", self.source_id, partition_id or "all")
            return 0, BatchResult()
        return len(listings), self.extract_batch(session, [listing.url for listing in listings])

    def fetch_incremental(
        self,
        session: BrowserSession,
        since: Optional[date] = None,
        partition_id: Optional[str] = None,
    ) -> tuple[int, BatchResult]:
        """
        Like fetch_all, keeping only opportunities whose event date is on or after `since`.
        Filtering is client-side: the site has no incremental feed.
        """
        found, result = self.fetch_all(session, partition_id)
        if since is None:
            return found, result
        kept = [o for o in result.opportunities if o.event_date[:10] >= since.isoformat()]
        if len(kept) != result.extracted:
            logger.info("Dropped %d listings closing before %s", result.extracted - len(kept), since)
        return found, BatchResult(opportunities=kept, failed=result.failed)
