# deckscout/report.py

from __future__ import annotations

from typing import Iterable, Optional

from deckscout.analyzer import build_analysis_section
from deckscout.config import DEFAULT_BATTLE_CAP, DEFAULT_REPORT_HEADER
from deckscout.models import Record

BATTLE_SEPARATOR = "\n\n---\n\n"
NO_CARD_DATA = "*no card data*"
NO_BATTLE_DATA = "*no battle data*"


def build_report(
    records: Iterable[Record],
    cards_text: Optional[str] = "",
    header: str = DEFAULT_REPORT_HEADER,
    cap: int = DEFAULT_BATTLE_CAP,
) -> str:
    """Assemble the final report text from the capped collection and inventory."""
    window = list(records or [])[:cap]
    battles_joined = BATTLE_SEPARATOR.join(r.rendered_text for r in window)

    sections = [
        header.strip(),
        "my cards:",
        (cards_text or "").strip() or NO_CARD_DATA,
        f"my battles (last {len(window)}):",
        battles_joined or NO_BATTLE_DATA,
        build_analysis_section(window, cap),
    ]
    return "\n\n".join(sections)
