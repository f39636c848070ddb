# deckscout/parser.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

from deckscout.config import BATTLE_SELECTOR, normalize_tag
from deckscout.models import Participant, Record
from deckscout.resolvers import resolve_first, safe_text, select_first
from deckscout.timeparse import format_display_time, now_millis, parse_time_to_millis
from deckscout.validation import is_admissible

logger = logging.getLogger(__name__)

SELF_LABEL = "Self"
OPPONENT_LABEL = "Opponent"

# (stats key, icon class, rendered label)
STAT_ICONS = (
    ("avg_elixir", "icon-average-elixir", "Avg Elixir"),
    ("shortest_cycle", "icon-shortest-cycle", "4-Card Cycle"),
    ("elixir_leaked", "icon-elixir-leaked", "Elixir Leaked"),
)

_STAT_LABEL_RE = re.compile(
    r"\b(Avg Elixir|Average Elixir|4-Card Cycle|4 Card Cycle|Elixir Leaked)\b[:\s-]*", re.I
)
_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?")
_SIGNED_INT_RE = re.compile(r"[+-]?\d+")
_PROFILE_TAG_RE = re.compile(r"player/([^/?#]+)", re.I)
_WIN_WORD_RE = re.compile(r"win|victory|victorious", re.I)
_LOSS_WORD_RE = re.compile(r"lose|lost|defeat", re.I)


def strip_card_name(raw: str) -> str:
    """'Knight (Lvl 11)' -> 'Knight'; drops parenthetical and level annotations."""
    if not raw:
        return ""
    text = re.sub(r"\s*\(.*?\)", "", str(raw))
    text = re.sub(r"\s+Lvl\s*\d+", "", text, flags=re.I)
    return text.strip()


def normalize_deck(deck: List[str]) -> List[str]:
    return [name for name in (strip_card_name(card) for card in deck or []) if name]


def clean_stat_raw(raw: str) -> str:
    """Reduce a stat cell like 'Avg Elixir: 3.50' to '3.5'; non-numeric text is kept."""
    if not raw:
        return ""
    text = _STAT_LABEL_RE.sub("", str(raw).strip()).strip()
    match = _NUMBER_RE.search(text)
    if match:
        num = float(match.group(0))
        if num.is_integer():
            return str(int(num))
        return f"{num:.2f}".rstrip("0").rstrip(".")
    return re.sub(r"\s{2,}", " ", text).strip()


def parse_signed_int(raw: str) -> Optional[int]:
    match = _SIGNED_INT_RE.search(str(raw or ""))
    if not match:
        return None
    try:
        return int(match.group(0))
    except ValueError:
        return None


def format_delta(raw: str) -> str:
    text = str(raw or "")
    if text.startswith(("+", "-")):
        return text
    value = parse_signed_int(text)
    if value is not None and value > 0:
        return "+" + text
    return text


def _closest(node: Tag, class_name: str) -> Optional[Tag]:
    if class_name in (node.get("class") or []):
        return node
    return node.find_parent(class_=class_name)


def _contains(ancestor: Tag, node: Tag) -> bool:
    return node is ancestor or any(parent is ancestor for parent in node.parents)


# --- Stat resolvers (exact class -> partial class -> label text) ---

def _value_near(node: Tag) -> str:
    item = _closest(node, "item") or node.parent or node
    value_node = select_first(item, ".value", ".stat-value", ".number")
    raw = safe_text(value_node) if value_node is not None else safe_text(item)
    return clean_stat_raw(raw)


def _stat_resolvers(icon_class: str) -> List[Callable[[Tag], Optional[str]]]:
    simple = re.sub(r"^icon-", "", icon_class)
    label_text = simple.replace("-", " ")

    def by_exact_class(container: Tag) -> Optional[str]:
        node = container.select_one("." + icon_class)
        return _value_near(node) if node is not None else None

    def by_partial_class(container: Tag) -> Optional[str]:
        node = container.select_one(f'[class*="{simple}"]')
        return _value_near(node) if node is not None else None

    def by_label_text(container: Tag) -> Optional[str]:
        for node in container.select(".item, .stats, .value"):
            if label_text in safe_text(node).lower():
                value_node = select_first(node, ".value", ".stat-value", ".number")
                raw = safe_text(value_node) if value_node is not None else safe_text(node)
                return clean_stat_raw(raw)
        return None

    return [by_exact_class, by_partial_class, by_label_text]


_STAT_CHAINS = {key: _stat_resolvers(icon) for key, icon, _ in STAT_ICONS}


@dataclass
class _BattleContext:
    battle: Tag
    nodes: List[Tag]
    segments: List[Tag]
    participants: List[Participant]
    result_text: str
    player_tag: str


# --- Identity resolvers ---

def _identity_from_profile_links(ctx: _BattleContext) -> Optional[int]:
    for idx, participant in enumerate(ctx.participants[:2]):
        if participant.profile_tag and participant.profile_tag == ctx.player_tag:
            return idx
    return None


def _split_tags(raw: str) -> List[str]:
    return [normalize_tag(t) for t in str(raw or "").split(",") if t.strip()]


def _identity_from_tag_attributes(ctx: _BattleContext) -> Optional[int]:
    source = ctx.battle.select_one("[data-team-tags], [data-player-tags], [data-opponent-tags]")
    if source is None:
        return None
    team_tags = _split_tags(source.get("data-team-tags") or source.get("data-player-tags") or "")
    opponent_tags = _split_tags(source.get("data-opponent-tags") or "")
    if ctx.player_tag in opponent_tags and len(ctx.participants) > 1:
        return 1
    if ctx.player_tag in team_tags and ctx.participants:
        return 0
    return None


IDENTITY_RESOLVERS = [_identity_from_profile_links, _identity_from_tag_attributes]


# --- Winner resolvers ---

def _winner_from_side_ribbon(ctx: _BattleContext) -> Optional[int]:
    if len(ctx.segments) < 2:
        return None
    for idx, segment in enumerate(ctx.segments):
        ribbon = segment.select_one(
            ".ui.right.ribbon.label, .ui.ribbon.label, .winner, .won, .victory, .victory-label"
        )
        if ribbon is not None and "win" in safe_text(ribbon).lower():
            return idx
    return None


def _winner_from_marker(ctx: _BattleContext) -> Optional[int]:
    marker = ctx.battle.select_one('[class*="team-winner"], .team-winner, .winner, .won, .victory')
    if marker is None:
        return None
    for idx, segment in enumerate(ctx.segments):
        if _contains(segment, marker):
            return idx
    return None


def _winner_from_trophy_delta(ctx: _BattleContext) -> Optional[int]:
    if len(ctx.participants) < 2:
        return None
    left = parse_signed_int(ctx.participants[0].trophy_change)
    right = parse_signed_int(ctx.participants[1].trophy_change)
    if left is None or right is None or left == right:
        return None
    return 0 if left > right else 1


def _winner_from_result_text(ctx: _BattleContext) -> Optional[int]:
    if not ctx.result_text or not _WIN_WORD_RE.search(ctx.result_text) or len(ctx.segments) < 2:
        return None
    left = ctx.segments[0].select_one(".ui.ribbon.label")
    right = ctx.segments[1].select_one(".ui.ribbon.label")
    left_win = left is not None and "win" in safe_text(left).lower()
    right_win = right is not None and "win" in safe_text(right).lower()
    if left_win and not right_win:
        return 0
    if right_win and not left_win:
        return 1
    return None


WINNER_RESOLVERS = [
    _winner_from_side_ribbon,
    _winner_from_marker,
    _winner_from_trophy_delta,
    _winner_from_result_text,
]


class BattleParser:
    """
    Turn battle-log HTML into normalized Records.

    Each battle block is read independently; a block that cannot be parsed
    or fails admission is skipped without affecting the rest of the batch.
    """

    def __init__(
        self,
        player_tag: str,
        clock: Callable[[], int] = now_millis,
        display_tz=None,
    ):
        self.player_tag = normalize_tag(player_tag)
        self.clock = clock
        self.display_tz = display_tz

    def parse_page(self, html: str) -> List[Record]:
        soup = BeautifulSoup(html or "", "html.parser")
        records: List[Record] = []
        skipped = 0
        for battle in soup.select(BATTLE_SELECTOR):
            try:
                record = self.parse_battle(battle)
            except Exception as exc:
                logger.debug("Skipping battle %s: %s", battle.get("id", "?"), exc)
                skipped += 1
                continue
            if record is None:
                skipped += 1
                continue
            admitted, warnings = is_admissible(record)
            if not admitted:
                logger.debug("Rejected battle %s: %s", battle.get("id", "?"), "; ".join(warnings))
                skipped += 1
                continue
            records.append(record)
        logger.debug("Parsed %s battles (%s skipped)", len(records), skipped)
        return records

    def parse_battle(self, battle: Tag) -> Optional[Record]:
        if battle is None:
            return None

        identifier = self._parse_identifier(battle)
        time_node = select_first(
            battle, ".battle-timestamp-popup", '[data-content*="UTC"]', ".i18n_duration_short"
        )
        raw_time = ""
        if time_node is not None:
            raw_time = time_node.get("data-content") or safe_text(time_node)
        timestamp = parse_time_to_millis(raw_time, clock=self.clock)
        local_time = format_display_time(raw_time, tz=self.display_tz)

        ribbon = select_first(
            battle, ".ui.ribbon.label", ".result .ui.header", ".win_loss .ui.right.ribbon.label"
        )
        result_text = safe_text(ribbon)
        score_text = safe_text(battle.select_one(".result_header"))

        segments = battle.select(".team-segment")
        nodes = segments if segments else battle.select(".battle_player, .player")[:2]
        participants = [self._parse_participant(node, is_segment=bool(segments)) for node in nodes]

        ctx = _BattleContext(
            battle=battle,
            nodes=nodes,
            segments=segments,
            participants=participants,
            result_text=result_text,
            player_tag=self.player_tag,
        )
        self_index = resolve_first(IDENTITY_RESOLVERS, ctx)
        winner_index = resolve_first(WINNER_RESOLVERS, ctx)
        self_lost = self._resolve_self_lost(ctx, self_index, winner_index)

        self_deck, opponent_deck = self._split_decks(participants, self_index)
        self_stats, opponent_stats = self._split_stats(participants, self_index)

        text = self._render(
            battle,
            participants,
            self_index,
            local_time=local_time,
            result_text=result_text,
            score_text=score_text,
        )

        return Record(
            identifier=identifier,
            timestamp=timestamp,
            rendered_text=text,
            self_lost=self_lost,
            identity_resolved=self_index is not None,
            self_deck=self_deck,
            opponent_deck=opponent_deck,
            self_stats=self_stats,
            opponent_stats=opponent_stats,
            raw_time=str(raw_time).strip(),
        )

    # --- Internal helpers ---

    @staticmethod
    def _parse_identifier(battle: Tag) -> str:
        raw = battle.get("id") or battle.get("data-id") or ""
        return re.sub(r"^battle_", "", str(raw)).strip()

    def _parse_participant(self, node: Tag, is_segment: bool = True) -> Participant:
        name_selectors = [".player_name_header", ".player_name"]
        if not is_segment:
            name_selectors.append("a")
        name = safe_text(select_first(node, *name_selectors))
        clan = safe_text(select_first(node, ".battle_player_clan", ".clan"))

        trophies = safe_text(select_first(
            node,
            ".trophy_container > .ui.label:not(.basic)",
            ".trophy_container .ui.label:not(.basic)",
            ".trophy",
        ))
        change_raw = safe_text(node.select_one(".trophy_container .ui.basic.label"))
        change_match = _SIGNED_INT_RE.search(change_raw)
        trophy_change = change_match.group(0) if change_match else change_raw

        stats_container = select_first(node, ".stats.item", ".stats") or node
        stats: Dict[str, str] = {}
        for key, _, _ in STAT_ICONS:
            stats[key] = resolve_first(_STAT_CHAINS[key], stats_container, default="")
        stats["hp"] = self._participant_hp(stats_container, node)

        return Participant(
            name=name,
            clan=clan,
            trophies=trophies,
            trophy_change=trophy_change,
            deck=self._parse_deck(node),
            stats=stats,
            tower_level=self._tower_level(node),
            profile_tag=self._profile_tag(node),
        )

    @staticmethod
    def _parse_deck(node: Tag) -> List[str]:
        grid = select_first(node, '.ui.padded.grid[id^="deck_"]', ".ui.padded.grid") or node
        deck: List[str] = []
        for img in grid.select("img.deck_card, .deck_card__four_wide img"):
            name = (img.get("alt") or img.get("data-card-key") or "").strip()
            if not name:
                continue
            wrapper = img.find_parent(class_="deck_card__four_wide")
            level_node = wrapper.select_one(".card-level") if wrapper is not None else None
            level = re.sub(r"^Lvl\s*", "", safe_text(level_node), flags=re.I) if level_node else ""
            deck.append(f"{name} ({level})" if level else name)
        return deck

    @staticmethod
    def _participant_hp(container: Tag, node: Tag) -> str:
        popup = select_first(container, ".hp-popup", ".hp-both-popup")
        if popup is not None:
            total = popup.get("data-total") or popup.get("data-team-total") or ""
            if total:
                return f"{total} HP"
            parts = []
            for attr, label in (("data-king", "King"), ("data-princess0", "P0"), ("data-princess1", "P1")):
                if popup.get(attr):
                    parts.append(f"{label}:{popup.get(attr)}")
            if parts:
                return " / ".join(parts)
            return safe_text(popup)
        alt = node.select_one(".hp, .hp-popup, .hp-both-popup")
        if alt is not None:
            return alt.get("data-total") or safe_text(alt)
        return ""

    @staticmethod
    def _tower_level(node: Tag) -> str:
        level_node = node.select_one(".level")
        if level_node is not None:
            text = safe_text(level_node)
            match = (
                re.search(r"Lvl\s*([0-9]+)", text, re.I)
                or re.search(r"level\s*([0-9]+)", text, re.I)
                or re.search(r"(\d+)\s*$", text)
            )
            return match.group(1) if match else ""
        princess = node.select_one('img[alt*="Princess"], img[alt*="princess"], [data-card-key*="princess"]')
        if princess is not None:
            wrapper = princess.find_parent(class_="deck_card__four_wide")
            level_node = wrapper.select_one(".card-level") if wrapper is not None else None
            if level_node is not None:
                return re.sub(r"^Lvl\s*", "", safe_text(level_node), flags=re.I)
        return ""

    @staticmethod
    def _profile_tag(node: Tag) -> str:
        link = node.select_one('a[href*="/player/"]')
        if link is None:
            return ""
        match = _PROFILE_TAG_RE.search(link.get("href") or "")
        return normalize_tag(match.group(1)) if match else ""

    @staticmethod
    def _resolve_self_lost(ctx: _BattleContext, self_index: Optional[int], winner_index: Optional[int]) -> bool:
        # Unknown identity counts as "not a loss"
        if self_index is None:
            return False
        if winner_index is not None:
            return winner_index != self_index
        change = None
        if self_index < len(ctx.participants):
            change = parse_signed_int(ctx.participants[self_index].trophy_change)
        if change is not None:
            return change < 0
        return bool(_LOSS_WORD_RE.search(ctx.result_text or ""))

    @staticmethod
    def _split_decks(participants: List[Participant], self_index: Optional[int]):
        if self_index is not None:
            self_deck = normalize_deck(participants[self_index].deck)
            other = 1 if self_index == 0 else 0
            opponent_deck = normalize_deck(participants[other].deck) if other < len(participants) else []
            return self_deck, opponent_deck
        if len(participants) > 1:
            return [], normalize_deck(participants[1].deck)
        if participants:
            return [], normalize_deck(participants[0].deck)
        return [], []

    @staticmethod
    def _split_stats(participants: List[Participant], self_index: Optional[int]):
        if not participants:
            return None, None
        if self_index is not None:
            other = 1 if self_index == 0 else 0
            opponent = participants[other].stats_bundle() if other < len(participants) else None
            return participants[self_index].stats_bundle(), opponent
        opponent = participants[1].stats_bundle() if len(participants) > 1 else None
        return participants[0].stats_bundle(), opponent

    def _render(
        self,
        battle: Tag,
        participants: List[Participant],
        self_index: Optional[int],
        local_time: str,
        result_text: str,
        score_text: str,
    ) -> str:
        lines: List[str] = []

        mode = safe_text(battle.select_one(".game_mode_header"))
        header = " — ".join(part for part in (mode, local_time) if part)
        if header:
            lines.append(header)

        duration = safe_text(battle.select_one(".i18n_duration_short, .battle-duration, .duration"))
        if duration:
            lines.append(f"{duration} Ago")

        if result_text and score_text:
            lines.append(f"Result: {result_text} ({score_text})")
        elif result_text or score_text:
            lines.append(f"Result: {result_text or score_text}")

        for idx, participant in enumerate(participants):
            label = SELF_LABEL if idx == self_index else OPPONENT_LABEL
            line = f"Player {idx + 1}: {label}"
            if participant.trophies:
                line += f" — {participant.trophies}"
            if participant.trophy_change:
                line += f" ({format_delta(participant.trophy_change)})"
            lines.append(line)

            if participant.deck:
                lines.append("  Deck: " + ", ".join(participant.deck))

            stat_parts = [
                f"{label_text}: {participant.stats[key]}"
                for key, _, label_text in STAT_ICONS
                if participant.stats.get(key)
            ]
            if participant.stats.get("hp"):
                stat_parts.append(f"HP: {participant.stats['hp']}")
            if stat_parts:
                lines.append("  Stats: " + " • ".join(stat_parts))

            if participant.tower_level:
                lines.append(f"Tower Princess: LvL {participant.tower_level}")

        hp_line = self._battle_hp(battle)
        if hp_line:
            lines.append(f"HP: {hp_line}")

        return "\n".join(lines).strip()

    @staticmethod
    def _battle_hp(battle: Tag) -> str:
        popup = select_first(battle, ".hp-popup", ".hp-both-popup")
        if popup is None:
            return ""
        team_total = popup.get("data-total") or popup.get("data-team-total") or ""
        oppo_total = popup.get("data-oppo-total") or ""
        if team_total or oppo_total:
            return team_total + (f" vs {oppo_total}" if oppo_total else "")
        return safe_text(popup)
