# deckscout/scraper/__init__.py
"""
Browser-side pieces of the battle-log collector.

Playwright page adapter, scroll driver, bounded waits and session helpers.
``BattleLogScraper`` lives in ``deckscout.scraper.core``.
"""

from .errors import PlayerNotFoundError, ReportDeliveryError, ScraperBlockedError
from .page import PlaywrightBattlePage
from .scroll import ScrollDriver, ScrollMetrics, ScrollOutcome
from .session import close_browser, create_browser_context, save_storage_state
from .waits import StabilityDetector, StabilityResult, wait_until

__all__ = [
    'PlayerNotFoundError',
    'ReportDeliveryError',
    'ScraperBlockedError',
    'PlaywrightBattlePage',
    'ScrollDriver',
    'ScrollMetrics',
    'ScrollOutcome',
    'close_browser',
    'create_browser_context',
    'save_storage_state',
    'StabilityDetector',
    'StabilityResult',
    'wait_until',
]
