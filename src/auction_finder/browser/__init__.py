"""Headless browser access."""

from auction_finder.browser.session import BrowserSession, PlaywrightSession

__all__ = ["BrowserSession", "PlaywrightSession"]
