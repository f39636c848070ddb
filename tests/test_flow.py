# tests/test_flow.py
"""End-to-end collection flow against in-memory pages."""

from pathlib import Path

import pytest

from deckscout.config import (
    KEY_BATTLES_DATA,
    KEY_CARDS_TEXT,
    KEY_FINAL_TEXT,
    KEY_FLOW_STAGE,
    KEY_RESUME_META,
    ScoutConfig,
)
from deckscout.database import SessionStore
from deckscout.flow import BattleLogFlow
from deckscout.models import FlowStage, FlowState
from deckscout.pagination import save_checkpoint
from deckscout.sink import BrowserClipboardSink
from tests.helpers import (
    BATTLES_URL,
    CARDS_URL,
    TRACKED_TAG,
    FakeBattlePage,
    FakeClock,
    GrowingBattlePage,
    RecordingSink,
    battle_html,
    history_page,
    make_record,
)

FIXTURES = Path(__file__).parent / "fixtures"
BASE_TS = 1_700_000_000


def _page_url(n):
    return f"{BATTLES_URL}/history?before={n}"


def _history(pages, per_page, last_links=False, overlap=0):
    """Build ``pages`` history pages of ``per_page`` battles, newest first."""
    out = {}
    serial = 0
    for page_no in range(pages):
        battles = []
        if page_no and overlap:
            for back in range(overlap):
                prev = serial - overlap + back
                battles.append(battle_html(f"b{prev}", BASE_TS - prev * 60, [f"Card{prev % 5}"]))
        for _ in range(per_page):
            battles.append(battle_html(f"b{serial}", BASE_TS - serial * 60, [f"Card{serial % 5}", "Zap"]))
            serial += 1
        has_next = page_no < pages - 1 or last_links
        url = BATTLES_URL if page_no == 0 else _page_url(page_no)
        next_href = f"/player/{TRACKED_TAG}/battles/history?before={page_no + 1}" if has_next else None
        out[url] = history_page(battles, next_href)
    return out


@pytest.fixture
def store():
    store = SessionStore(":memory:", namespace=TRACKED_TAG)
    yield store
    store.close()


@pytest.fixture
def config():
    return ScoutConfig(player_tag="#abc123", collect_inventory=False)


def _flow(config, store):
    clock = FakeClock()
    return BattleLogFlow(config, store, clock=clock, sleep=clock.sleep)


class TestCollectionFlow:
    def test_cap_reached_across_three_pages(self, config, store):
        pages = _history(3, 12, last_links=True)
        pages[_page_url(3)] = history_page([])
        page = FakeBattlePage(pages)

        result = _flow(config, store).run(page)

        assert result.status == "cap_reached"
        assert len(result.records) == 30
        assert [r.identifier for r in result.records] == [f"b{i}" for i in range(30)]
        timestamps = [r.timestamp for r in result.records]
        assert timestamps == sorted(timestamps, reverse=True)
        assert result.pages == 3
        assert page.visits == [BATTLES_URL, _page_url(1), _page_url(2)]
        assert result.errors == []

    def test_overlapping_pages_are_deduplicated(self, config, store):
        page = FakeBattlePage(_history(3, 8, overlap=3))
        result = _flow(config, store).run(page)
        assert result.status == "exhausted"
        keys = [r.key for r in result.records]
        assert len(keys) == len(set(keys)) == 24

    def test_exhausted_without_next_page(self, config, store):
        page = FakeBattlePage(_history(2, 5))
        result = _flow(config, store).run(page)
        assert result.status == "exhausted"
        assert len(result.records) == 10
        assert "my battles (last 10):" in result.report

    def test_finalize_persists_report_and_stage(self, config, store):
        page = FakeBattlePage(_history(1, 4))
        result = _flow(config, store).run(page)
        assert store.get(KEY_FLOW_STAGE) == "done"
        assert store.get(KEY_FINAL_TEXT) == result.report
        assert "Opponent card analysis (last 4 battles — 0 losses):" in result.report
        assert "1) Zap — 100% - 4 times" in result.report

    def test_resume_from_checkpoint(self, config, store):
        stored = [make_record(f"old{i}", (BASE_TS + 1000 + i) * 1000) for i in range(5)]
        save_checkpoint(store, FlowState(
            stage=FlowStage.BATTLES_COLLECTING,
            records=tuple(stored),
            continuation=_page_url(1),
            origin_url=BATTLES_URL,
            visited=(BATTLES_URL, _page_url(1)),
        ))
        pages = _history(2, 5)
        page = FakeBattlePage(pages)

        result = _flow(config, store).run(page)

        assert page.visits == [_page_url(1)]
        assert result.status == "exhausted"
        assert len(result.records) == 10
        assert result.records[0].identifier == "old4"

    def test_done_stage_reuses_report(self, config, store):
        page = FakeBattlePage(_history(1, 3))
        first = _flow(config, store).run(page)

        again_page = FakeBattlePage({})
        second = _flow(config, store).run(again_page)

        assert second.status == "cached"
        assert second.report == first.report
        assert again_page.visits == []

    def test_restart_ignores_stored_report(self, config, store):
        _flow(config, store).run(FakeBattlePage(_history(1, 3)))
        page = FakeBattlePage(_history(1, 2))
        result = _flow(config, store).run(page, restart=True)
        assert result.status == "exhausted"
        assert len(result.records) == 2

    def test_inventory_collected_first(self, store):
        config = ScoutConfig(player_tag=TRACKED_TAG, min_card_level=10)
        pages = _history(1, 2)
        pages[CARDS_URL] = (FIXTURES / "cards_page.html").read_text(encoding="utf-8")
        page = FakeBattlePage(pages)

        result = _flow(config, store).run(page)

        assert page.visits[0] == CARDS_URL
        assert "Knight — Lvl 14 — Elixir: 3 — Evolution: ev1" in store.get(KEY_CARDS_TEXT)
        assert "Fireball" not in result.report
        assert "my cards:\n\nKnight — Lvl 14" in result.report

    def test_inventory_failure_does_not_stop_battles(self, store):
        config = ScoutConfig(player_tag=TRACKED_TAG)
        page = FakeBattlePage(_history(1, 2))
        result = _flow(config, store).run(page)
        assert result.status == "exhausted"
        assert len(result.records) == 2
        assert any("Card collection failed" in e for e in result.errors)
        assert "*no card data*" in result.report

    def test_report_delivered_to_sink(self, config, store):
        sink = RecordingSink()
        result = _flow(config, store).run(FakeBattlePage(_history(1, 2)), sink=sink)
        assert sink.written == [result.report]
        assert store.get(KEY_BATTLES_DATA) is None
        assert store.get(KEY_RESUME_META) is None
        assert store.get(KEY_FINAL_TEXT) == result.report

    def test_clipboard_failure_keeps_snapshot(self, config, store, capsys):
        page = FakeBattlePage(_history(1, 2), fail_clipboard=True)
        result = _flow(config, store).run(page, sink=BrowserClipboardSink(page))
        assert result.status == "exhausted"
        assert store.get(KEY_BATTLES_DATA) is not None
        assert result.report in capsys.readouterr().out


class TestScrollLoading:
    @staticmethod
    def _chunks(start, sizes):
        chunks, serial = [], start
        for size in sizes:
            chunk = []
            for _ in range(size):
                chunk.append(battle_html(f"b{serial}", BASE_TS - serial * 60, [f"Card{serial % 5}"]))
                serial += 1
            chunks.append(chunk)
        return chunks

    def test_battles_revealed_by_scrolling_are_collected(self, config, store):
        page = GrowingBattlePage(
            {BATTLES_URL: self._chunks(0, [4, 4, 4]), _page_url(1): self._chunks(12, [3, 3])},
            next_links={BATTLES_URL: f"/player/{TRACKED_TAG}/battles/history?before=1"},
        )
        page.goto(BATTLES_URL)
        assert page.battle_count() == 4

        result = _flow(config, store).run(page)

        assert result.status == "exhausted"
        assert result.pages == 2
        assert page.reveals == 3
        assert [r.identifier for r in result.records] == [f"b{i}" for i in range(18)]
        assert page.visits == [BATTLES_URL, BATTLES_URL, _page_url(1)]

    def test_without_scrolling_only_first_chunk_is_visible(self):
        page = GrowingBattlePage({BATTLES_URL: self._chunks(0, [4, 4])})
        page.goto(BATTLES_URL)
        page.scroll_to(100)
        assert page.battle_count() == 4
        page.scroll_to(page.scroll_metrics().bottom_y)
        assert page.battle_count() == 8
        assert page.visible_loader_top() is not None


class TestReentrancyGuard:
    def test_second_run_for_same_tag_is_refused(self, config, store):
        BattleLogFlow._active.add(config.player_tag)
        try:
            result = _flow(config, store).run(FakeBattlePage(_history(1, 1)))
        finally:
            BattleLogFlow._active.discard(config.player_tag)
        assert result.status == "busy"

    def test_guard_released_after_failure(self, config, store):
        page = FakeBattlePage({})
        result = _flow(config, store).run(page)
        assert result.status == "error"
        assert result.errors
        assert config.player_tag not in BattleLogFlow._active

        ok = _flow(config, store).run(FakeBattlePage(_history(1, 1)))
        assert ok.status == "exhausted"
