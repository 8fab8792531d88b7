"""Source connectors for auction listings."""

from auction_finder.connectors.base import BaseConnector, BatchResult

__all__ = ["BaseConnector", "BatchResult"]
