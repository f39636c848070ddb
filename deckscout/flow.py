# deckscout/flow.py
"""
Collection flow for one tracked player.

Stages run in order and each one is checkpointed, so a flow interrupted by
navigation, a crash or Ctrl+C picks up where it stopped:

    start -> cards_collected -> battles_collecting -> done
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Set, Tuple

from deckscout.config import (
    BATTLE_SELECTOR,
    KEY_CARDS_TEXT,
    KEY_FINAL_TEXT,
    KEY_FLOW_STAGE,
    ScoutConfig,
)
from deckscout.inventory import collect_inventory, format_inventory
from deckscout.models import FlowResult, FlowStage, FlowState, PaginationStatus
from deckscout.pagination import (
    PaginationController,
    find_continuation,
    load_checkpoint,
    load_stage,
    save_checkpoint,
)
from deckscout.parser import BattleParser
from deckscout.report import build_report
from deckscout.scraper.scroll import ScrollDriver
from deckscout.scraper.waits import Clock, Sleep, StabilityDetector
from deckscout.sink import deliver_report

logger = logging.getLogger(__name__)

STATUS_CACHED = "cached"
STATUS_BUSY = "busy"
STATUS_ERROR = "error"


class BattleLogFlow:
    """
    Drive inventory and battle collection for ``config.player_tag``.

    ``page`` is a ``PlaywrightBattlePage`` (or anything with the same
    surface). Only one flow per tag runs at a time within a process.
    """

    _active: Set[str] = set()

    def __init__(
        self,
        config: ScoutConfig,
        store,
        parser: Optional[BattleParser] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ):
        self.config = config
        self.store = store
        self.parser = parser or BattleParser(config.player_tag, display_tz=config.display_tz)
        self.controller = PaginationController(cap=config.battle_cap, max_pages=config.max_pages)
        self.clock = clock
        self.sleep = sleep

    def reset(self) -> None:
        """Forget all stored progress for this player."""
        self.store.clear()

    def run(self, page, restart: bool = False, sink=None) -> FlowResult:
        tag = self.config.player_tag
        if tag in self._active:
            logger.warning("A collection flow for #%s is already running", tag)
            return FlowResult(status=STATUS_BUSY, errors=[f"flow already running for #{tag}"])

        self._active.add(tag)
        errors: List[str] = []
        try:
            if restart:
                self.reset()

            stage = load_stage(self.store)
            if stage == FlowStage.DONE:
                report = self.store.get(KEY_FINAL_TEXT) or ""
                if report:
                    logger.info("Reusing finished report for #%s", tag)
                    if sink is not None:
                        deliver_report(report, sink, self.store)
                    return FlowResult(status=STATUS_CACHED, report=report)
                stage = FlowStage.START

            if stage == FlowStage.START:
                self._collect_cards(page, errors)
                stage = FlowStage.CARDS_COLLECTED

            state = self._enter_battles(page, stage)
            status, state = self._collect_battles(page, state)
            return self._finalize(state, status, errors, sink)
        except Exception as exc:
            logger.exception("Collection flow for #%s failed", tag)
            errors.append(str(exc))
            return FlowResult(status=STATUS_ERROR, errors=errors)
        finally:
            self._active.discard(tag)

    # --- Stages ---

    def _collect_cards(self, page, errors: List[str]) -> None:
        cards_text = ""
        if self.config.collect_inventory:
            try:
                cards = collect_inventory(page, self.config)
                cards_text = format_inventory(cards, self.config.min_card_level)
            except Exception as exc:
                logger.warning("Card collection failed: %s", exc)
                errors.append(f"Card collection failed: {exc}")
        self.store.set(KEY_CARDS_TEXT, cards_text)
        self.store.set(KEY_FLOW_STAGE, FlowStage.CARDS_COLLECTED.value)

    def _enter_battles(self, page, stage: FlowStage) -> FlowState:
        """Open the page collection continues from and return the state to continue with."""
        origin = self.config.battles_url
        if stage == FlowStage.BATTLES_COLLECTING:
            state = load_checkpoint(self.store)
            target = state.continuation or state.origin_url or origin
            logger.info("Resuming battle collection for #%s at %s (%s stored)",
                        self.config.player_tag, target, len(state.records))
            if not state.visited:
                state = state.evolve(visited=(target,))
            if not state.origin_url:
                state = state.evolve(origin_url=origin)
        else:
            target = origin
            state = FlowState(
                stage=FlowStage.BATTLES_COLLECTING,
                origin_url=origin,
                visited=(origin,),
            )
            save_checkpoint(self.store, state)

        page.goto(target)
        return state

    def _collect_battles(self, page, state: FlowState) -> Tuple[PaginationStatus, FlowState]:
        while True:
            self._load_page(page)
            html = page.content()
            batch = self.parser.parse_page(html)
            continuation = find_continuation(html, page.url)
            logger.info("Page %s: %s battles extracted", state.pages_visited, len(batch))

            status, state = self.controller.step(state, batch, continuation)
            if status != PaginationStatus.COLLECTING:
                return status, state

            save_checkpoint(self.store, state)
            logger.info("Loading older battles from %s", state.continuation)
            page.goto(state.continuation)
            state = load_checkpoint(self.store)

    def _load_page(self, page) -> None:
        """Scroll the battle list to its end and wait for the count to settle."""
        page.wait_for_selector(BATTLE_SELECTOR, self.config.stable_max_wait_seconds)
        baseline = page.battle_count()

        driver = ScrollDriver(
            page,
            step_px=self.config.scroll_step_px,
            step_delay=self.config.scroll_delay_seconds,
            loader_poll=self.config.loader_poll_seconds,
            loader_max_wait=self.config.loader_max_wait_seconds,
            max_total=self.config.scroll_max_total_seconds,
            clock=self.clock,
            sleep=self.sleep,
        )
        outcome = driver.scroll_to_bottom()

        detector = StabilityDetector(
            page.battle_count,
            poll_interval=self.config.stable_poll_seconds,
            quiet_period=self.config.stable_required_seconds,
            max_wait=self.config.stable_max_wait_seconds,
            clock=self.clock,
            sleep=self.sleep,
        )
        result = detector.wait(baseline)
        logger.debug(
            "Scroll ended (%s, %s steps); battles %s -> %s",
            outcome.reason, outcome.steps, baseline, result.count,
        )

    def _finalize(self, state: FlowState, status: PaginationStatus, errors: List[str], sink) -> FlowResult:
        records = list(state.records)
        report = build_report(
            records,
            self.store.get(KEY_CARDS_TEXT) or "",
            header=self.config.report_header,
            cap=self.config.battle_cap,
        )
        save_checkpoint(self.store, state.evolve(stage=FlowStage.DONE, continuation=None))
        self.store.set(KEY_FINAL_TEXT, report)
        logger.info("Report ready for #%s: %s battles (%s)", self.config.player_tag, len(records), status.value)

        if sink is not None:
            deliver_report(report, sink, self.store)

        return FlowResult(
            status=status.value,
            report=report,
            records=records,
            pages=state.pages_visited,
            errors=errors,
        )
