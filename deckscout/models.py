# deckscout/models.py

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class Participant:
    """One side of a battle as read from the page (before redaction)."""

    name: str = ""
    clan: str = ""
    trophies: str = ""
    trophy_change: str = ""
    deck: List[str] = field(default_factory=list)
    stats: Dict[str, str] = field(default_factory=dict)
    tower_level: str = ""
    profile_tag: str = ""

    def stats_bundle(self) -> Dict[str, str]:
        bundle = dict(self.stats)
        bundle["tower_level"] = self.tower_level or ""
        return bundle


@dataclass(frozen=True)
class Record:
    """One completed battle, normalized."""

    identifier: str
    timestamp: int
    rendered_text: str
    self_lost: bool = False
    identity_resolved: bool = False
    self_deck: List[str] = field(default_factory=list)
    opponent_deck: List[str] = field(default_factory=list)
    self_stats: Optional[Dict[str, str]] = None
    opponent_stats: Optional[Dict[str, str]] = None
    # Time exactly as the page showed it, before resolution against the clock
    raw_time: str = ""

    @property
    def key(self) -> str:
        """
        Dedup key: the resource id, or a hash of the page time and rendered text.

        The resolved timestamp is left out because relative and unparseable
        times resolve against the clock and differ between page loads.
        """
        if self.identifier:
            return str(self.identifier)
        basis = f"{self.raw_time}\n{self.rendered_text}"
        digest = hashlib.sha1(basis.encode("utf-8")).hexdigest()[:12]
        return f"t_{digest}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.identifier,
            "timestamp": self.timestamp,
            "text": self.rendered_text,
            "self_lost": self.self_lost,
            "identity_resolved": self.identity_resolved,
            "self_deck": list(self.self_deck),
            "opponent_deck": list(self.opponent_deck),
            "self_stats": self.self_stats,
            "opponent_stats": self.opponent_stats,
            "raw_time": self.raw_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Record":
        return cls(
            identifier=str(data.get("id") or ""),
            timestamp=int(data.get("timestamp") or 0),
            rendered_text=str(data.get("text") or ""),
            self_lost=bool(data.get("self_lost", False)),
            identity_resolved=bool(data.get("identity_resolved", False)),
            self_deck=list(data.get("self_deck") or []),
            opponent_deck=list(data.get("opponent_deck") or []),
            self_stats=data.get("self_stats"),
            opponent_stats=data.get("opponent_stats"),
            raw_time=str(data.get("raw_time") or ""),
        )


@dataclass(frozen=True)
class CardFrequencyEntry:
    card_name: str
    occurrence_count: int
    percent_of_window: int


@dataclass(frozen=True)
class InventoryCard:
    name: str
    level: Optional[int] = None
    elixir: str = ""
    evolution: str = ""

    def to_line(self) -> str:
        level = str(self.level) if self.level is not None else "n/a"
        line = f"{self.name} — Lvl {level} — Elixir: {self.elixir or 'n/a'}"
        if self.evolution:
            line += f" — Evolution: {self.evolution}"
        return line


class FlowStage(str, Enum):
    START = "start"
    CARDS_COLLECTED = "cards_collected"
    BATTLES_COLLECTING = "battles_collecting"
    DONE = "done"


class PaginationStatus(str, Enum):
    COLLECTING = "collecting"
    CAP_REACHED = "cap_reached"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class FlowState:
    """Explicit state of one collection flow, passed between controller steps."""

    stage: FlowStage = FlowStage.START
    records: tuple = ()
    continuation: Optional[str] = None
    origin_url: Optional[str] = None
    visited: tuple = ()
    updated_at: int = 0

    @property
    def pages_visited(self) -> int:
        return len(self.visited)

    def evolve(self, **changes) -> "FlowState":
        return replace(self, **changes)


@dataclass
class FlowResult:
    status: str
    report: str = ""
    records: List[Record] = field(default_factory=list)
    pages: int = 0
    errors: List[str] = field(default_factory=list)
