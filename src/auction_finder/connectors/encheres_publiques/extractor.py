"""Detail page extraction from the embedded Next.js state."""

import json
import logging
import random
import time
from datetime import date
from typing import Any, Callable, Optional

from pydantic import ValidationError

from auction_finder.browser.session import BrowserSession
from auction_finder.connectors.base import BatchResult
from auction_finder.errors import ExtractionFailure
from auction_finder.models.page_state import NextData
from auction_finder.models.raw import RawOpportunity

from .constants import NEXT_DATA_SELECTOR, SITE_BASE_URL
from .parsers import absolute_url, parse_lot_page

logger = logging.getLogger(__name__)

NEXT_DATA_SCRIPT = f"""
() => {{
  const el = document.querySelector('{NEXT_DATA_SELECTOR}');
  return el ? el.textContent : null;
}}
"""

FETCH_DELAY_RANGE = (2.0, 3.0)


def parse_next_data(raw: Any, url: str) -> NextData:
    """Validate the `__NEXT_DATA__` payload (JSON text or already-decoded dict)."""
    if raw is None or raw == "":
        raise ExtractionFailure(url, "no embedded state")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ExtractionFailure(url, "no embedded state") from e
    if not isinstance(raw, dict):
        raise ExtractionFailure(url, "no embedded state")
    try:
        return NextData.model_validate(raw)
    except ValidationError as e:
        raise ExtractionFailure(url, "no embedded state") from e


class DetailExtractor:
    """Loads each lot page and parses it into a RawOpportunity."""

    def __init__(
        self,
        base_url: str = SITE_BASE_URL,
        batch_size: int = 10,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.base_url = base_url
        self.batch_size = max(batch_size, 1)
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._today = today

    def extract(self, session: BrowserSession, url: str) -> RawOpportunity:
        """
        Navigate to one lot page and parse it.
        Raises ExtractionFailure for missing state/record, NavigationError for load failures.
        """
        full_url = absolute_url(url, self.base_url)
        session.navigate(full_url)
        session.wait_for_ready()
        state = parse_next_data(session.evaluate(NEXT_DATA_SCRIPT), full_url)
        today = self._today() if self._today else None
        return parse_lot_page(state, full_url, base_url=self.base_url, today=today)

    def extract_batch(
        self,
        session: BrowserSession,
        urls: list[str],
        batch_size: Optional[int] = None,
    ) -> BatchResult:
        """
        Extract urls in fixed-size batches, pausing 2-3 s before each page.
        Per-listing failures are logged and counted; navigation errors propagate.
        """
        size = max(batch_size or self.batch_size, 1)
        result = BatchResult()
        total_batches = (len(urls) + size - 1) // size
        for start in range(0, len(urls), size):
            batch = urls[start : start + size]
            logger.info("Processing detail batch %d/%d (%d urls)", start // size + 1, total_batches, len(batch))
            for url in batch:
                self._sleep(self._rng.uniform(*FETCH_DELAY_RANGE))
                try:
                    result.opportunities.append(self.extract(session, url))
                except ExtractionFailure as e:
                    result.failed += 1
                    logger.warning("Skipping listing %s: %s", e.url, e.reason)
        logger.info("Extracted %d listings, %d failed", result.extracted, result.failed)
        return result
