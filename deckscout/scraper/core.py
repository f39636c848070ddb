# deckscout/scraper/core.py

from __future__ import annotations

import logging
from typing import Optional

from deckscout.config import ScoutConfig
from deckscout.flow import BattleLogFlow
from deckscout.models import FlowResult
from deckscout.sink import BrowserClipboardSink, FileSink
from .page import PlaywrightBattlePage
from .session import close_browser, create_browser_context, save_storage_state

logger = logging.getLogger(__name__)


class BattleLogScraper:
    """Automated RoyaleAPI battle-log collector using Playwright."""

    def __init__(
        self,
        config: ScoutConfig,
        store,
        headless: bool = True,
        slow_mo: int = 0,
        storage_state_path: Optional[str] = None,
    ):
        self.config = config
        self.store = store
        self.headless = headless
        self.slow_mo = slow_mo
        self.storage_state_path = storage_state_path
        self._playwright = None
        self.browser = None
        self.context = None
        self.page = None

    # --- Main entry point ---

    def run(self, restart: bool = False, output_path: Optional[str] = None) -> FlowResult:
        """
        Run the collection flow in a fresh browser.

        The report goes to ``output_path`` when given, otherwise to the
        browser clipboard.
        """
        self._launch_browser()
        try:
            page = PlaywrightBattlePage(self.page)
            sink = FileSink(output_path) if output_path else BrowserClipboardSink(page)
            flow = BattleLogFlow(self.config, self.store, sleep=page.pause)
            result = flow.run(page, restart=restart, sink=sink)

            if self.storage_state_path:
                try:
                    save_storage_state(self.context, self.storage_state_path)
                except RuntimeError as exc:
                    logger.warning("%s", exc)
            return result
        finally:
            self._close_browser()

    # --- Internal helpers ---

    def _launch_browser(self) -> None:
        if self.browser:
            return
        self._playwright, self.browser, self.context = create_browser_context(
            headed=not self.headless,
            storage_state_path=self.storage_state_path,
            slow_mo=self.slow_mo,
        )
        self.page = self.context.new_page()

    def _close_browser(self) -> None:
        close_browser(self._playwright, self.browser)
        self._playwright = None
        self.browser = None
        self.context = None
        self.page = None
