"""encheres-publiques.com connector: browser discovery plus detail extraction."""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from auction_finder.browser.session import BrowserSession
from auction_finder.connectors.base import BaseConnector, BatchResult
from auction_finder.models.raw import Listing, RawOpportunity

from .constants import DEFAULT_LISTING_URL, SOURCE_ID
from .discovery import ListingDiscovery
from .extractor import DetailExtractor


def with_query_param(url: str, name: str, value: str) -> str:
    """url with query parameter `name` set to `value` (replacing any existing one)."""
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != name]
    query.append((name, value))
    return urlunsplit(parts._replace(query=urlencode(query)))


class EncheresPubliquesConnector(BaseConnector):
    """
    Connector for real-estate auctions on encheres-publiques.com.
    Listings are rendered client-side, so everything goes through a browser session.
    """

    source_id = SOURCE_ID

    def __init__(
        self,
        listing_url: str = DEFAULT_LISTING_URL,
        partition_param: str = "departements",
        discovery: Optional[ListingDiscovery] = None,
        extractor: Optional[DetailExtractor] = None,
    ):
        self._listing_url = listing_url
        self.partition_param = partition_param
        self.discovery = discovery or ListingDiscovery()
        self.extractor = extractor or DetailExtractor()

    def listing_url(self, partition_id: Optional[str] = None) -> str:
        if not partition_id:
            return self._listing_url
        return with_query_param(self._listing_url, self.partition_param, partition_id)

    def discover(self, session: BrowserSession) -> list[Listing]:
        return self.discovery.discover(session)

    def extract(self, session: BrowserSession, url: str) -> RawOpportunity:
        return self.extractor.extract(session, url)

    def extract_batch(self, session: BrowserSession, urls: list[str]) -> BatchResult:
        return self.extractor.extract_batch(session, urls)
