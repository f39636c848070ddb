# deckscout/config.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

BASE_URL = "https://royaleapi.com"
CARDS_PATH = "/player/{tag}/cards/levels"
BATTLES_PATH = "/player/{tag}/battles"

# Accumulated collection cap (battles kept and analyzed)
DEFAULT_BATTLE_CAP = 30

# Hard stop on history pages followed in one flow
DEFAULT_MAX_PAGES = 50

# Scroll driver
SCROLL_STEP_PX = 800
SCROLL_DELAY_SECONDS = 0.25
SCROLL_SETTLE_SECONDS = 0.08
SCROLL_MAX_TOTAL_SECONDS = 20.0
SCROLL_BOTTOM_TOLERANCE_PX = 10

# Loading indicator
LOADER_SELECTOR = "#scrolling_battle_loader, .scrolling_battle_loader"
LOADER_POLL_SECONDS = 0.3
LOADER_MAX_WAIT_SECONDS = 8.0

# Stability detector
STABLE_POLL_SECONDS = 0.3
STABLE_REQUIRED_SECONDS = 0.9
STABLE_MAX_WAIT_SECONDS = 8.0

# Inventory page
CARDS_WAIT_SECONDS = 15.0

BATTLE_SELECTOR = '.battle_list_battle, .battle.battle_list_battle, [id^="battle_"]'
NEXT_PAGE_SELECTOR = 'a[href*="/battles/history?before="]'
CARD_ITEM_SELECTOR = ".player_card_link.player_card_item, .player_card_item, a.player_card_link"

# Storage keys
KEY_CARDS_TEXT = "cards_text"
KEY_BATTLES_DATA = "battles_data"
KEY_RESUME_META = "resume_meta"
KEY_FLOW_STAGE = "flow_stage"
KEY_FINAL_TEXT = "final_text"

DEFAULT_DB_PATH = "data/deckscout.db"

DEFAULT_REPORT_HEADER = (
    "Analyze everything and suggest the strongest deck I can build to keep pushing "
    "my trophies. Return the deck as card names, each name on a new line (if a card "
    "has an evolution, put it first but don't type \"Evolution\").\n\n"
    "Do not fall back on generic meta decks; tailor the choice to my cards and "
    "battles, and add a short explanation."
)


def normalize_tag(tag: str) -> str:
    """Return a player tag upper-cased without the leading '#'."""
    return str(tag or "").strip().lstrip("#").upper()


@dataclass(frozen=True)
class ScoutConfig:
    player_tag: str
    base_url: str = BASE_URL
    battle_cap: int = DEFAULT_BATTLE_CAP
    max_pages: int = DEFAULT_MAX_PAGES
    min_card_level: int = 0
    collect_inventory: bool = True
    report_header: str = DEFAULT_REPORT_HEADER

    scroll_step_px: int = SCROLL_STEP_PX
    scroll_delay_seconds: float = SCROLL_DELAY_SECONDS + SCROLL_SETTLE_SECONDS
    scroll_max_total_seconds: float = SCROLL_MAX_TOTAL_SECONDS
    loader_poll_seconds: float = LOADER_POLL_SECONDS
    loader_max_wait_seconds: float = LOADER_MAX_WAIT_SECONDS
    stable_poll_seconds: float = STABLE_POLL_SECONDS
    stable_required_seconds: float = STABLE_REQUIRED_SECONDS
    stable_max_wait_seconds: float = STABLE_MAX_WAIT_SECONDS
    cards_wait_seconds: float = CARDS_WAIT_SECONDS

    # Timezone used for rendered battle times; None means local time
    display_tz: Optional[object] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "player_tag", normalize_tag(self.player_tag))
        if not self.player_tag:
            raise ValueError("player_tag is required")
        if self.battle_cap < 1:
            raise ValueError(f"battle_cap must be positive, got {self.battle_cap}")

    @property
    def cards_url(self) -> str:
        return self.base_url.rstrip("/") + CARDS_PATH.format(tag=self.player_tag)

    @property
    def battles_path(self) -> str:
        return BATTLES_PATH.format(tag=self.player_tag)

    @property
    def battles_url(self) -> str:
        return self.base_url.rstrip("/") + self.battles_path
