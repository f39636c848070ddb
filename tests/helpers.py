# tests/helpers.py

from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from deckscout.config import BATTLE_SELECTOR
from deckscout.models import Record
from deckscout.scraper.errors import ReportDeliveryError
from deckscout.scraper.scroll import ScrollMetrics

TRACKED_TAG = "ABC123"
BATTLES_URL = f"https://royaleapi.com/player/{TRACKED_TAG}/battles"
CARDS_URL = f"https://royaleapi.com/player/{TRACKED_TAG}/cards/levels"


class FakeClock:
    """Monotonic clock whose sleep just advances time."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeBattlePage:
    """In-memory stand-in for PlaywrightBattlePage, keyed by absolute URL."""

    def __init__(self, pages: Dict[str, str], fail_clipboard: bool = False):
        self.pages = pages
        self.fail_clipboard = fail_clipboard
        self.current_url = ""
        self.visits: List[str] = []
        self.clipboard: Optional[str] = None
        self.scroll_calls: List[float] = []

    @property
    def url(self) -> str:
        return self.current_url

    def goto(self, url: str) -> None:
        if url not in self.pages:
            raise RuntimeError(f"Unexpected navigation to {url}")
        self.current_url = url
        self.visits.append(url)

    def content(self) -> str:
        return self.pages.get(self.current_url, "")

    def battle_count(self) -> int:
        soup = BeautifulSoup(self.content(), "html.parser")
        return len(soup.select(BATTLE_SELECTOR))

    def scroll_metrics(self) -> ScrollMetrics:
        return ScrollMetrics(scroll_y=1000.0, viewport_height=800.0, document_height=1800.0)

    def visible_loader_top(self):
        return None

    def scroll_to(self, y: float) -> None:
        self.scroll_calls.append(y)

    def wait_for_selector(self, selector: str, timeout_seconds: float) -> bool:
        return True

    def write_clipboard(self, text: str) -> None:
        if self.fail_clipboard:
            raise ReportDeliveryError("clipboard unavailable")
        self.clipboard = text


class GrowingBattlePage(FakeBattlePage):
    """
    Infinite-scroll page: each URL starts with its first chunk of battles and
    reveals the next chunk when scrolled to the bottom. A loader shows for a
    couple of checks after every reveal.
    """

    VIEWPORT = 800.0

    def __init__(self, chunks: Dict[str, List[List[str]]], next_links: Optional[Dict[str, str]] = None,
                 loader_checks: int = 2):
        super().__init__({url: "" for url in chunks})
        self.chunks = chunks
        self.next_links = next_links or {}
        self.loader_checks = loader_checks
        self.revealed = 0
        self.reveals = 0
        self.scroll_y = 0.0
        self._loader_left = 0

    def goto(self, url: str) -> None:
        super().goto(url)
        self.revealed = 1
        self.scroll_y = 0.0
        self._loader_left = 0

    def content(self) -> str:
        battles = [block for chunk in self.chunks.get(self.current_url, [])[:self.revealed] for block in chunk]
        return history_page(battles, self.next_links.get(self.current_url))

    def scroll_metrics(self) -> ScrollMetrics:
        document = self.VIEWPORT * (self.revealed + 1)
        return ScrollMetrics(scroll_y=self.scroll_y, viewport_height=self.VIEWPORT, document_height=document)

    def visible_loader_top(self):
        if self._loader_left > 0:
            self._loader_left -= 1
            return self.VIEWPORT - 200.0
        return None

    def scroll_to(self, y: float) -> None:
        super().scroll_to(y)
        self.scroll_y = max(0.0, float(y))
        at_bottom = self.scroll_y >= self.scroll_metrics().bottom_y - 10
        if at_bottom and self.revealed < len(self.chunks.get(self.current_url, [])):
            self.revealed += 1
            self.reveals += 1
            self._loader_left = self.loader_checks


def make_record(
    identifier: str,
    timestamp: int,
    opponent_deck: Optional[List[str]] = None,
    self_lost: bool = False,
    identity_resolved: bool = True,
    text: Optional[str] = None,
) -> Record:
    return Record(
        identifier=identifier,
        timestamp=timestamp,
        rendered_text=text if text is not None else f"Battle {identifier or timestamp}",
        self_lost=self_lost,
        identity_resolved=identity_resolved,
        self_deck=["Knight", "Archers"],
        opponent_deck=list(opponent_deck or []),
    )


def battle_html(
    battle_id: str,
    epoch_seconds: int,
    opponent_cards: List[str],
    self_tag: str = TRACKED_TAG,
    self_won: bool = True,
) -> str:
    """One segment-style battle block as RoyaleAPI renders it."""
    self_ribbon = "Win" if self_won else "Loss"
    oppo_ribbon = "Loss" if self_won else "Win"
    oppo_deck = "".join(
        f'<div class="deck_card__four_wide"><img class="deck_card" alt="{card}">'
        f'<div class="card-level">Lvl 13</div></div>'
        for card in opponent_cards
    )
    return f"""
<div class="ui attached segment battle_list_battle" id="battle_{battle_id}">
  <div class="game_mode_header">Ladder</div>
  <div class="battle-timestamp-popup" data-content="{epoch_seconds}"></div>
  <div class="result_header">1 - 0</div>
  <div class="team-segment">
    <div class="ui ribbon label">{self_ribbon}</div>
    <a class="player_name_header" href="/player/{self_tag}">Tracked</a>
    <div class="trophy_container"><div class="ui label">7000</div><div class="ui basic label">{'+30' if self_won else '-30'}</div></div>
    <div class="ui padded grid" id="deck_{battle_id}_a">
      <div class="deck_card__four_wide"><img class="deck_card" alt="Knight"><div class="card-level">Lvl 14</div></div>
      <div class="deck_card__four_wide"><img class="deck_card" alt="Archers"><div class="card-level">Lvl 14</div></div>
    </div>
  </div>
  <div class="team-segment">
    <div class="ui ribbon label">{oppo_ribbon}</div>
    <a class="player_name_header" href="/player/OPP{battle_id}">Rival</a>
    <div class="trophy_container"><div class="ui label">6990</div><div class="ui basic label">{'-30' if self_won else '+30'}</div></div>
    <div class="ui padded grid" id="deck_{battle_id}_b">{oppo_deck}</div>
  </div>
</div>
"""


def history_page(battles: List[str], next_href: Optional[str] = None) -> str:
    link = f'<a href="{next_href}">Older battles</a>' if next_href else ""
    return "<html><body><div id=\"battles\">" + "".join(battles) + "</div>" + link + "</body></html>"


class RecordingSink:
    def __init__(self):
        self.written: List[str] = []

    def write(self, text: str) -> None:
        self.written.append(text)


class FailingSink:
    def write(self, text: str) -> None:
        raise ReportDeliveryError("sink is down")
