# deckscout/analyzer.py

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Sequence

from deckscout.config import DEFAULT_BATTLE_CAP
from deckscout.models import CardFrequencyEntry, Record
from deckscout.parser import strip_card_name

EMPTY_ANALYSIS_MESSAGE = "Opponent card analysis: No battles available to analyze."


def _percent(count: int, window: int) -> int:
    """count / window as a whole percent, halves rounded up."""
    return (count * 200 + window) // (2 * window)


class OpponentCardAnalyzer:
    """Frequency of opponent cards across the most recent battles."""

    def __init__(self, cap: int = DEFAULT_BATTLE_CAP):
        if cap < 1:
            raise ValueError(f"cap must be positive, got {cap}")
        self.cap = cap

    def window(self, records: Iterable[Record]) -> List[Record]:
        return list(records or [])[: self.cap]

    @staticmethod
    def top_size(window_size: int) -> int:
        return math.ceil(window_size / 2)

    def frequency(self, records: Iterable[Record]) -> List[CardFrequencyEntry]:
        """
        Count, per opponent card, how many battles in the window featured it.

        A card repeated inside one opponent deck counts once for that battle.
        Sorted by count desc, percent desc, then name; all entries returned.
        """
        window = self.window(records)
        if not window:
            return []

        counts: Dict[str, int] = {}
        for record in window:
            seen = {strip_card_name(card) for card in record.opponent_deck or []}
            for card in seen:
                if not card:
                    continue
                counts[card] = counts.get(card, 0) + 1

        entries = [
            CardFrequencyEntry(card_name=card, occurrence_count=count, percent_of_window=_percent(count, len(window)))
            for card, count in counts.items()
        ]
        entries.sort(key=lambda e: (-e.occurrence_count, -e.percent_of_window, e.card_name))
        return entries

    def top(self, records: Sequence[Record]) -> List[CardFrequencyEntry]:
        window = self.window(records)
        return self.frequency(window)[: self.top_size(len(window))]

    def build_section(self, records: Sequence[Record]) -> str:
        window = self.window(records)
        if not window:
            return EMPTY_ANALYSIS_MESSAGE

        losses = sum(1 for r in window if r.self_lost)
        unresolved = sum(1 for r in window if not r.identity_resolved)
        entries = self.top(window)

        header = f"Opponent card analysis (last {len(window)} battles — {losses} losses"
        if unresolved:
            header += f", {unresolved} without an identified player side"
        header += "):"

        if not entries:
            return header + "\nOpponent decks could not be parsed."

        lines = [header, "Most common opponent cards (sorted by frequency):"]
        for idx, entry in enumerate(entries, start=1):
            lines.append(
                f"{idx}) {entry.card_name} — {entry.percent_of_window}% - {entry.occurrence_count} times"
            )
        return "\n".join(lines)


def build_card_frequency(records: Iterable[Record], cap: int = DEFAULT_BATTLE_CAP) -> List[CardFrequencyEntry]:
    """Top ``ceil(window / 2)`` opponent cards for the first ``cap`` records."""
    analyzer = OpponentCardAnalyzer(cap)
    return analyzer.top(list(records or []))


def build_analysis_section(records: Iterable[Record], cap: int = DEFAULT_BATTLE_CAP) -> str:
    return OpponentCardAnalyzer(cap).build_section(list(records or []))
