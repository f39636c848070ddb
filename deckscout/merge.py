# deckscout/merge.py

from __future__ import annotations

import logging
from typing import Dict, Iterable, List

from deckscout.config import DEFAULT_BATTLE_CAP
from deckscout.models import Record

logger = logging.getLogger(__name__)


def merge_records(
    accumulated: Iterable[Record],
    batch: Iterable[Record],
    cap: int = DEFAULT_BATTLE_CAP,
) -> List[Record]:
    """
    Merge a fresh extraction batch into the accumulated collection.

    Records are keyed by identifier (or synthesized key); for a repeated key
    the copy with the larger timestamp wins, the earlier copy on a tie. The
    result is newest-first and truncated to ``cap``. Merging the same batch
    twice gives the same result as merging it once.
    """
    if cap < 1:
        raise ValueError(f"cap must be positive, got {cap}")

    by_key: Dict[str, Record] = {}
    for record in list(accumulated) + list(batch):
        if record is None:
            continue
        existing = by_key.get(record.key)
        if existing is None or (record.timestamp or 0) > (existing.timestamp or 0):
            by_key[record.key] = record

    merged = sorted(by_key.values(), key=lambda r: r.timestamp or 0, reverse=True)
    kept = merged[:cap]
    if len(merged) > cap:
        logger.debug("Merge dropped %s records beyond cap %s", len(merged) - cap, cap)
    return kept
