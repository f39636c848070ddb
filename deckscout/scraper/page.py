# deckscout/scraper/page.py
"""
Thin adapter between the collection flow and a Playwright page.

The flow, scroll driver and stability detector only talk to this small
surface, which keeps them testable against a fake page.
"""

from __future__ import annotations

import logging
from typing import Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout

from deckscout.config import BATTLE_SELECTOR, LOADER_SELECTOR
from .errors import PlayerNotFoundError, ReportDeliveryError, ScraperBlockedError
from .scroll import ScrollMetrics

logger = logging.getLogger(__name__)

_METRICS_JS = """
() => ({
    scrollY: window.scrollY || window.pageYOffset || 0,
    innerHeight: window.innerHeight || document.documentElement.clientHeight,
    scrollHeight: document.body.scrollHeight,
})
"""

# Mirrors an on-screen check: non-empty box intersecting the viewport, not hidden.
_LOADER_TOP_JS = """
(selector) => {
    const el = document.querySelector(selector);
    if (!el) return null;
    const rect = el.getBoundingClientRect();
    if (rect.width <= 0 || rect.height <= 0) return null;
    const vh = window.innerHeight || document.documentElement.clientHeight;
    const vw = window.innerWidth || document.documentElement.clientWidth;
    if (rect.bottom < 0 || rect.top > vh) return null;
    if (rect.right < 0 || rect.left > vw) return null;
    const cs = getComputedStyle(el);
    if (cs.display === 'none' || cs.visibility === 'hidden' || parseFloat(cs.opacity || '1') === 0) return null;
    return rect.top;
}
"""

_SCROLL_JS = "(y) => window.scrollTo({ top: y, behavior: 'smooth' })"

_CLIPBOARD_JS = "async (text) => { await navigator.clipboard.writeText(text); }"


class PlaywrightBattlePage:
    """Battle-log operations on top of a Playwright ``Page``."""

    def __init__(self, page, navigate_wait_ms: int = 1500):
        self.page = page
        self.navigate_wait_ms = navigate_wait_ms

    @property
    def url(self) -> str:
        return self.page.url

    def goto(self, url: str) -> None:
        """Navigate with Cloudflare and 404 detection."""
        self.page.goto(url, wait_until="domcontentloaded")
        self.page.wait_for_timeout(self.navigate_wait_ms)
        title = self.page.title().lower()

        if "attention" in title or "just a moment" in title:
            self.page.wait_for_timeout(10000)
            self.page.reload(wait_until="domcontentloaded")
            self.page.wait_for_timeout(self.navigate_wait_ms)
            if "attention" in self.page.title().lower():
                raise ScraperBlockedError("Cloudflare blocked this request")

        if "not found" in title or "404" in title:
            raise PlayerNotFoundError(f"Player page not found at {url}")

    def content(self) -> str:
        return self.page.content()

    def battle_count(self) -> int:
        return self.page.locator(BATTLE_SELECTOR).count()

    def scroll_metrics(self) -> ScrollMetrics:
        raw = self.page.evaluate(_METRICS_JS)
        return ScrollMetrics(
            scroll_y=float(raw.get("scrollY") or 0),
            viewport_height=float(raw.get("innerHeight") or 0),
            document_height=float(raw.get("scrollHeight") or 0),
        )

    def visible_loader_top(self) -> Optional[float]:
        top = self.page.evaluate(_LOADER_TOP_JS, LOADER_SELECTOR)
        return None if top is None else float(top)

    def scroll_to(self, y: float) -> None:
        self.page.evaluate(_SCROLL_JS, max(0, int(y)))

    def pause(self, seconds: float) -> None:
        self.page.wait_for_timeout(int(seconds * 1000))

    def wait_for_selector(self, selector: str, timeout_seconds: float) -> bool:
        """Bounded wait for a visible element; False on timeout instead of raising."""
        try:
            self.page.wait_for_selector(selector, state="visible", timeout=int(timeout_seconds * 1000))
            return True
        except PlaywrightTimeout:
            logger.info("No '%s' after %.0fs; continuing with current page", selector, timeout_seconds)
            return False

    def write_clipboard(self, text: str) -> None:
        try:
            self.page.context.grant_permissions(["clipboard-read", "clipboard-write"])
        except PlaywrightError as exc:
            logger.debug("Clipboard permissions not granted: %s", exc)
        try:
            self.page.evaluate(_CLIPBOARD_JS, text)
        except PlaywrightError as exc:
            raise ReportDeliveryError(f"Clipboard write failed: {exc}")
