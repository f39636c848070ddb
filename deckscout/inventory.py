# deckscout/inventory.py
"""
Card inventory from the player's card-levels page.

Only a thin text serialization is produced; the report embeds it verbatim.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from deckscout.config import CARD_ITEM_SELECTOR, ScoutConfig
from deckscout.models import InventoryCard
from deckscout.resolvers import safe_text, select_first

logger = logging.getLogger(__name__)

_EVOLUTION_RE = re.compile(r"-ev\d+", re.I)
_DIGITS_RE = re.compile(r"\d+")


def _parse_card(node: Tag) -> Optional[InventoryCard]:
    name_node = select_first(node, ".player_cards__card_name", ".card_name", ".name")
    name = safe_text(name_node)
    if not name:
        img = node.select_one("img")
        name = (img.get("alt") or "").strip() if img is not None else ""
    name = name or "Unknown"

    level_text = safe_text(select_first(node, ".player_cards__card_level", ".card-level"))
    level_match = _DIGITS_RE.search(level_text)
    level = int(level_match.group(0)) if level_match else None

    elixir = (node.get("data-elixir") or "").strip()
    if not elixir:
        elixir = safe_text(select_first(node, ".player_cards__crelixir", ".elixir"))

    ident = node.get("id") or node.get("href") or ""
    ev_match = _EVOLUTION_RE.search(str(ident))
    evolution = ev_match.group(0).lstrip("-") if ev_match else ""

    return InventoryCard(name=name, level=level, elixir=elixir, evolution=evolution)


def parse_card_levels_html(html: str) -> List[InventoryCard]:
    soup = BeautifulSoup(html or "", "html.parser")
    cards: List[InventoryCard] = []
    for node in soup.select(CARD_ITEM_SELECTOR):
        try:
            card = _parse_card(node)
        except Exception as exc:
            logger.debug("Skipping card node: %s", exc)
            continue
        if card is not None:
            cards.append(card)
    return cards


def format_inventory(cards: List[InventoryCard], min_level: int = 0) -> str:
    """One line per card; cards with a known level below ``min_level`` are dropped."""
    lines = []
    for card in cards:
        if min_level and card.level is not None and card.level < min_level:
            continue
        lines.append(card.to_line())
    return "\n".join(lines)


def collect_inventory(page, config: ScoutConfig) -> List[InventoryCard]:
    """Open the card-levels page and read whatever cards render within the wait."""
    page.goto(config.cards_url)
    if not page.wait_for_selector(CARD_ITEM_SELECTOR, config.cards_wait_seconds):
        logger.warning("Card list did not appear on %s", config.cards_url)
    cards = parse_card_levels_html(page.content())
    logger.info("Collected %s cards for #%s", len(cards), config.player_tag)
    return cards
