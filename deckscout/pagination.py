# deckscout/pagination.py
"""
Multi-page collection control.

``PaginationController.step`` folds one page's batch into the flow state and
decides whether to stop (cap reached, history exhausted) or follow the
next-page link. ``save_checkpoint``/``load_checkpoint`` carry that state
across the navigation, which tears down everything in memory.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from deckscout.config import (
    DEFAULT_BATTLE_CAP,
    DEFAULT_MAX_PAGES,
    KEY_BATTLES_DATA,
    KEY_FLOW_STAGE,
    KEY_RESUME_META,
    NEXT_PAGE_SELECTOR,
)
from deckscout.merge import merge_records
from deckscout.models import FlowStage, FlowState, PaginationStatus, Record
from deckscout.timeparse import now_millis

logger = logging.getLogger(__name__)


def find_continuation(html: str, base_url: str) -> Optional[str]:
    """Absolute URL of the next history page, or None when there is none."""
    soup = BeautifulSoup(html or "", "html.parser")
    link = soup.select_one(NEXT_PAGE_SELECTOR)
    if link is None:
        return None
    href = (link.get("href") or "").strip()
    if not href:
        return None
    return urljoin(base_url, href)


class PaginationController:
    def __init__(
        self,
        cap: int = DEFAULT_BATTLE_CAP,
        max_pages: int = DEFAULT_MAX_PAGES,
        clock: Callable[[], int] = now_millis,
    ):
        if cap < 1:
            raise ValueError(f"cap must be positive, got {cap}")
        self.cap = cap
        self.max_pages = max_pages
        self.clock = clock

    def step(
        self,
        state: FlowState,
        batch: Iterable[Record],
        continuation: Optional[str],
    ) -> Tuple[PaginationStatus, FlowState]:
        """
        Merge ``batch`` and decide what happens next.

        Returns the new status and state. On COLLECTING the state's
        ``continuation`` is the page to load next and has been added to
        ``visited``.
        """
        merged = merge_records(state.records, batch, self.cap)
        state = state.evolve(records=tuple(merged), updated_at=self.clock())

        if len(merged) >= self.cap:
            logger.info("Collected %s battles; cap reached", len(merged))
            return PaginationStatus.CAP_REACHED, state.evolve(continuation=None)

        if not continuation:
            logger.info("No older battle page; history exhausted with %s battles", len(merged))
            return PaginationStatus.EXHAUSTED, state.evolve(continuation=None)

        if continuation in state.visited or continuation == state.origin_url:
            logger.warning("Next page %s was already visited; stopping", continuation)
            return PaginationStatus.EXHAUSTED, state.evolve(continuation=None)

        if state.pages_visited >= self.max_pages:
            logger.warning("Visited %s pages without reaching cap; stopping", state.pages_visited)
            return PaginationStatus.EXHAUSTED, state.evolve(continuation=None)

        return PaginationStatus.COLLECTING, state.evolve(
            stage=FlowStage.BATTLES_COLLECTING,
            continuation=continuation,
            visited=state.visited + (continuation,),
        )


def save_checkpoint(store, state: FlowState) -> None:
    """Persist everything needed to resume collection after navigating."""
    store.set(KEY_BATTLES_DATA, [record.to_dict() for record in state.records])
    store.set(
        KEY_RESUME_META,
        {
            "from": state.origin_url,
            "next": state.continuation,
            "ts": state.updated_at,
            "visited": list(state.visited),
        },
    )
    store.set(KEY_FLOW_STAGE, state.stage.value)


def load_stage(store) -> FlowStage:
    raw = store.get(KEY_FLOW_STAGE)
    try:
        return FlowStage(raw) if raw else FlowStage.START
    except ValueError:
        logger.warning("Unknown stored flow stage %r; starting over", raw)
        return FlowStage.START


def load_checkpoint(store) -> FlowState:
    """Rebuild the flow state from storage; missing pieces fall back to empty."""
    records = []
    for item in store.get(KEY_BATTLES_DATA) or []:
        if not isinstance(item, dict):
            continue
        try:
            records.append(Record.from_dict(item))
        except (TypeError, ValueError) as exc:
            logger.debug("Dropping unreadable stored battle: %s", exc)

    meta = store.get(KEY_RESUME_META) or {}
    if not isinstance(meta, dict):
        meta = {}

    return FlowState(
        stage=load_stage(store),
        records=tuple(records),
        continuation=meta.get("next") or None,
        origin_url=meta.get("from") or None,
        visited=tuple(meta.get("visited") or ()),
        updated_at=int(meta.get("ts") or 0),
    )
