# deckscout/scraper/session.py
"""
Browser session management for Playwright-based scraping.

Handles browser lifecycle and storage state persistence for cookies, so a
Cloudflare clearance obtained once can be reused by later runs.
"""

import logging
import os
from typing import Optional, Tuple

from playwright.sync_api import Browser, BrowserContext, Error as PlaywrightError, Playwright, sync_playwright

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 900}


def create_browser_context(
    headed: bool = False,
    storage_state_path: Optional[str] = None,
    slow_mo: int = 0,
) -> Tuple[Playwright, Browser, BrowserContext]:
    """
    Start Playwright and open a browser context.

    Args:
        headed: If True, run browser in headed mode (visible window)
        storage_state_path: Path to storage state JSON file for cookie persistence.
                           If file exists, cookies will be loaded.
        slow_mo: Delay in ms between Playwright actions

    Returns:
        (playwright, browser, context) tuple

    Raises:
        RuntimeError: If browser launch fails
    """
    playwright = sync_playwright().start()
    try:
        browser = playwright.chromium.launch(headless=not headed, slow_mo=slow_mo)

        context_kwargs = {
            "user_agent": USER_AGENT,
            "viewport": VIEWPORT,
            "locale": "en-US",
        }
        if storage_state_path and os.path.exists(storage_state_path):
            context_kwargs["storage_state"] = storage_state_path

        context = browser.new_context(**context_kwargs)
        return playwright, browser, context

    except PlaywrightError as e:
        playwright.stop()
        raise RuntimeError(f"Failed to create browser context: {e}")


def save_storage_state(context: BrowserContext, path: str) -> None:
    """
    Save browser storage state (cookies, localStorage, etc.) to JSON file.

    Raises:
        RuntimeError: If save fails
    """
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        context.storage_state(path=path)
    except (PlaywrightError, OSError) as e:
        raise RuntimeError(f"Failed to save storage state to {path}: {e}")


def close_browser(playwright: Optional[Playwright], browser: Optional[Browser]) -> None:
    """Close browser and stop Playwright. Best effort."""
    if browser is not None:
        try:
            browser.close()
        except PlaywrightError as e:
            logger.debug("Browser close failed: %s", e)
    if playwright is not None:
        try:
            playwright.stop()
        except PlaywrightError as e:
            logger.debug("Playwright stop failed: %s", e)
