"""Headless browser session owning a single page."""

import logging
from typing import Any, Optional, Protocol

from playwright.sync_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeout,
    sync_playwright,
)

from auction_finder.errors import NavigationError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]
VIEWPORT = {"width": 1920, "height": 1080}

CONSENT_ROOT = ".fc-consent-root"
CONSENT_ACCEPT = ".fc-cta-consent"
READY_SELECTOR = "body"


class BrowserSession(Protocol):
    """What discovery and extraction need from a browser page."""

    def start(self) -> None: ...

    def navigate(self, url: str) -> None: ...

    def handle_cookie_consent(self) -> None: ...

    def wait_for_ready(self) -> None: ...

    def evaluate(self, script: str) -> Any: ...

    def scroll_to_bottom(self) -> None: ...

    def close(self) -> None: ...


class PlaywrightSession:
    """
    Chromium page driven through the Playwright sync API.
    Use as a context manager, or call start() and close() explicitly; close() is idempotent.
    """

    def __init__(
        self,
        headless: bool = True,
        navigation_timeout_ms: int = 30_000,
        ready_timeout_ms: int = 5_000,
        consent_timeout_ms: int = 3_000,
    ):
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.ready_timeout_ms = ready_timeout_ms
        self.consent_timeout_ms = consent_timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    def __enter__(self) -> "PlaywrightSession":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session not started")
        return self._page

    def start(self) -> None:
        if self._page is not None:
            return
        logger.info("Launching browser (headless=%s)", self.headless)
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            self._context = self._browser.new_context(viewport=VIEWPORT, user_agent=USER_AGENT)
            self._page = self._context.new_page()
            self._page.set_default_timeout(self.navigation_timeout_ms)
        except Exception:
            self.close()
            raise

    def navigate(self, url: str) -> None:
        """Load url; anything but an HTTP 200 is a NavigationError."""
        logger.debug("Navigating to %s", url)
        try:
            response = self.page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout_ms)
        except PlaywrightTimeout as e:
            raise NavigationError(url, "timeout") from e
        except Exception as e:
            raise NavigationError(url, str(e)) from e
        if response is None:
            raise NavigationError(url, "no response")
        if response.status != 200:
            raise NavigationError(url, f"HTTP {response.status}", status=response.status)

    def handle_cookie_consent(self) -> None:
        """Accept the consent overlay if it shows up; no-op when absent."""
        try:
            self.page.wait_for_selector(CONSENT_ROOT, timeout=self.consent_timeout_ms)
        except PlaywrightTimeout:
            logger.debug("No cookie consent overlay")
            return
        try:
            self.page.click(CONSENT_ACCEPT, timeout=self.consent_timeout_ms)
            self.page.wait_for_timeout(1_000)
            logger.debug("Cookie consent accepted")
        except PlaywrightTimeout:
            logger.warning("Cookie consent overlay found but accept button not clickable")

    def wait_for_ready(self) -> None:
        try:
            self.page.wait_for_selector(READY_SELECTOR, timeout=self.ready_timeout_ms)
        except PlaywrightTimeout as e:
            raise NavigationError(self.page.url, "content not ready") from e

    def evaluate(self, script: str) -> Any:
        return self.page.evaluate(script)

    def scroll_to_bottom(self) -> None:
        self.page.evaluate("window.scrollTo(0, document.body.scrollHeight)")

    def close(self) -> None:
        """Release page, context, browser and driver in that order."""
        for resource, name in (
            (self._context, "context"),
            (self._browser, "browser"),
        ):
            if resource is None:
                continue
            try:
                resource.close()
            except Exception as e:
                logger.warning("Failed to close browser %s: %s", name, e)
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception as e:
                logger.warning("Failed to stop playwright driver: %s", e)
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
