"""Listing discovery on the lazy-loaded search results page."""

import logging
import random
import time
from typing import Callable, Optional

from auction_finder.browser.session import BrowserSession
from auction_finder.models.raw import Listing

from .constants import CARD_SELECTOR, EXCLUDED_PATH, LISTING_PATH

logger = logging.getLogger(__name__)

# Returns the hrefs of every rendered card that points at a lot page.
LISTING_CARDS_SCRIPT = f"""
() => {{
  const urls = [];
  for (const card of document.querySelectorAll('{CARD_SELECTOR}')) {{
    const link = card.tagName === 'A' ? card : card.querySelector('a');
    const href = link ? link.getAttribute('href') || '' : '';
    if (href.includes('{LISTING_PATH}') && !href.includes('{EXCLUDED_PATH}')) {{
      urls.push(href);
    }}
  }}
  return urls;
}}
"""

STALE_LIMIT = 2
SCROLL_WAIT_RANGE = (2.0, 3.0)


def is_listing_url(href: str) -> bool:
    return LISTING_PATH in href and EXCLUDED_PATH not in href


class ListingDiscovery:
    """
    Scrolls the results page until no new cards show up for two consecutive
    attempts (or max_attempts is hit) and returns every lot URL seen.
    """

    def __init__(
        self,
        max_attempts: int = 50,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._rng = rng or random.Random()

    def _extract(self, session: BrowserSession) -> list[str]:
        hrefs = session.evaluate(LISTING_CARDS_SCRIPT) or []
        return [h for h in hrefs if isinstance(h, str) and h and is_listing_url(h)]

    def discover(self, session: BrowserSession, max_attempts: Optional[int] = None) -> list[Listing]:
        """URL-deduplicated listings in first-seen order."""
        limit = self.max_attempts if max_attempts is None else max_attempts
        seen: dict[str, None] = {}
        previous_count = -1
        stale = 0
        attempts = 0

        while attempts < limit:
            attempts += 1
            urls = self._extract(session)
            for url in urls:
                seen.setdefault(url, None)

            if len(urls) == previous_count:
                stale += 1
                if stale >= STALE_LIMIT:
                    logger.info("No new listings after %d attempts, stopping at attempt %d", STALE_LIMIT, attempts)
                    break
            else:
                stale = 0
            previous_count = len(urls)

            session.scroll_to_bottom()
            self._sleep(self._rng.uniform(*SCROLL_WAIT_RANGE))
        else:
            logger.info("Reached max scroll attempts (%d)", limit)

        for url in self._extract(session):
            seen.setdefault(url, None)

        logger.info("Discovered %d listings in %d attempts", len(seen), attempts)
        return [Listing(url=url) for url in seen]
