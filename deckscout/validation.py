# deckscout/validation.py
"""
Admission checks for extracted battle records.

Keeps half-rendered or placeholder battle blocks out of the accumulated
collection.
"""

from typing import List, Tuple

from deckscout.models import Record


def is_admissible(record: Record) -> Tuple[bool, List[str]]:
    """
    Decide whether an extracted record may enter the accumulated collection.

    Rules:
    1. Hard-fail: neither an identifier nor a timestamp → reject
    2. Hard-fail: empty rendered text → reject
    3. Warnings only: no opponent deck, unresolved tracked identity

    Args:
        record: Record produced by BattleParser

    Returns:
        (is_admissible: bool, warnings: List[str])

    Examples:
        >>> ok, warnings = is_admissible(Record(identifier="", timestamp=0, rendered_text="x"))
        >>> ok
        False
    """
    warnings = []

    if not record.identifier and not record.timestamp:
        warnings.append("REJECTED: record has neither identifier nor timestamp")
        return (False, warnings)

    if not (record.rendered_text or "").strip():
        warnings.append("REJECTED: rendered text is empty")
        return (False, warnings)

    if not record.opponent_deck:
        warnings.append("WARNING: opponent deck could not be parsed")
    if not record.identity_resolved:
        warnings.append("WARNING: tracked player not found in battle; counted as not a loss")

    return (True, warnings)
