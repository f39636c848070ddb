# deckscout/resolvers.py
"""
Ordered fallback chains for DOM lookups.

A resolver is a plain function ``subject -> Optional[value]``. A chain tries
each resolver in order and returns the first value that is not None or an
empty string. Resolvers that trip over unexpected markup are skipped.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence, TypeVar

from bs4 import Tag

logger = logging.getLogger(__name__)

S = TypeVar("S")
V = TypeVar("V")

Resolver = Callable[[S], Optional[V]]


def resolve_first(resolvers: Sequence[Resolver], subject, default=None):
    for resolver in resolvers:
        try:
            value = resolver(subject)
        except (AttributeError, TypeError, ValueError, IndexError) as exc:
            logger.debug("Resolver %s failed: %s", getattr(resolver, "__name__", resolver), exc)
            continue
        if value is not None and value != "":
            return value
    return default


def safe_text(node: Optional[Tag]) -> str:
    """Element text with whitespace collapsed, '' for a missing node."""
    if node is None:
        return ""
    return " ".join(node.get_text(" ", strip=True).split())


def select_first(node: Optional[Tag], *selectors: str) -> Optional[Tag]:
    """First match of the first selector that matches anything."""
    if node is None:
        return None
    for selector in selectors:
        found = node.select_one(selector)
        if found is not None:
            return found
    return None
