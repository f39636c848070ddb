# deckscout/timeparse.py

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Callable, Optional

# Numbers with fewer integer digits than this are epoch seconds
MILLIS_DIGIT_THRESHOLD = 12

_NUMERIC_RE = re.compile(r"^\d+(\.\d+)?$")
_ZONE_SUFFIX_RE = re.compile(r"\s*(UTC|GMT|Z)\s*$", re.I)
_RELATIVE_PART_RE = re.compile(r"(\d+)\s*([dhms])(?![a-z])", re.I)
_RELATIVE_FULL_RE = re.compile(r"^(\d+\s*[dhms]\s*)+(ago)?$", re.I)

_CALENDAR_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d",
    "%d %b %Y %H:%M:%S",
    "%d %b %Y %H:%M",
    "%b %d, %Y %H:%M:%S",
    "%b %d, %Y %H:%M",
)

_UNITS = {"d": 86400, "h": 3600, "m": 60, "s": 1}


def now_millis() -> int:
    return int(time.time() * 1000)


def _numeric_to_millis(cleaned: str) -> int:
    num = float(cleaned)
    if len(str(int(num))) < MILLIS_DIGIT_THRESHOLD:
        return int(num * 1000)
    return int(num)


def _parse_calendar(cleaned: str) -> Optional[datetime]:
    iso = cleaned
    if "T" not in iso and re.match(r"^\d{4}-\d{2}-\d{2} ", iso):
        iso = iso.replace(" ", "T", 1)
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        parsed = None
        for fmt in _CALENDAR_FORMATS:
            try:
                parsed = datetime.strptime(cleaned, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_relative_seconds(cleaned: str) -> Optional[int]:
    if not _RELATIVE_FULL_RE.match(cleaned):
        return None
    total = 0
    for amount, unit in _RELATIVE_PART_RE.findall(cleaned):
        total += int(amount) * _UNITS[unit.lower()]
    return total


def parse_datetime(raw) -> Optional[datetime]:
    """Parse an absolute time (numeric epoch or calendar string) into an aware datetime."""
    if raw is None:
        return None
    cleaned = _ZONE_SUFFIX_RE.sub("", str(raw).strip()).strip()
    if not cleaned:
        return None
    if _NUMERIC_RE.match(cleaned):
        return datetime.fromtimestamp(_numeric_to_millis(cleaned) / 1000, tz=timezone.utc)
    return _parse_calendar(cleaned)


def parse_time_to_millis(raw, clock: Callable[[], int] = now_millis) -> int:
    """
    Resolve a raw battle time to epoch milliseconds.

    Numeric input is disambiguated by digit count (seconds vs milliseconds);
    calendar strings lose a trailing zone marker and are read as UTC;
    relative durations ("2h 5m ago") count back from now. Anything else
    resolves to now.
    """
    if raw is None:
        return clock()
    cleaned = _ZONE_SUFFIX_RE.sub("", str(raw).strip()).strip()
    if not cleaned:
        return clock()
    if _NUMERIC_RE.match(cleaned):
        return _numeric_to_millis(cleaned)
    parsed = _parse_calendar(cleaned)
    if parsed is not None:
        return int(parsed.timestamp() * 1000)
    seconds = _parse_relative_seconds(cleaned)
    if seconds is not None:
        return clock() - seconds * 1000
    return clock()


def format_display_time(raw, tz=None) -> str:
    """Human-readable time for a battle header; '' when the raw value is not absolute."""
    parsed = parse_datetime(raw)
    if parsed is None:
        return ""
    return parsed.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S")
