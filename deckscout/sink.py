# deckscout/sink.py
"""
Report delivery.

A sink takes the finished report text. When it fails the report is printed
in full so it can still be copied by hand.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from deckscout.config import KEY_BATTLES_DATA, KEY_RESUME_META
from deckscout.scraper.errors import ReportDeliveryError

logger = logging.getLogger(__name__)


def safe_print(message: str) -> None:
    """Print with Unicode fallback for restricted terminal encodings."""
    try:
        print(message)
    except UnicodeEncodeError:
        fallback = (
            message.replace("✅", "[OK]")
            .replace("⚠️", "[WARN]")
            .replace("❌", "[ERROR]")
            .replace("—", "-")
            .replace("•", "*")
        )
        print(fallback.encode("ascii", "replace").decode("ascii"))


class BrowserClipboardSink:
    """Copy the report to the clipboard of the scraping browser."""

    def __init__(self, page):
        self.page = page

    def write(self, text: str) -> None:
        self.page.write_clipboard(text)


class FileSink:
    def __init__(self, path: str):
        self.path = path

    def write(self, text: str) -> None:
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as handle:
                handle.write(text)
        except OSError as e:
            raise ReportDeliveryError(f"Failed to write report to {self.path}: {e}")


def deliver_report(text: str, sink, store=None) -> bool:
    """
    Hand ``text`` to ``sink``. Returns True when the sink took it.

    On success the battle snapshot and resume metadata are cleared from
    ``store``; the stored report itself is kept. On failure the full text
    is printed instead.
    """
    try:
        sink.write(text)
    except ReportDeliveryError as exc:
        logger.error("Report delivery failed: %s", exc)
        safe_print("⚠️ Could not deliver the report automatically. Copy it from below:\n")
        safe_print(text)
        return False

    logger.info("Report delivered (%s characters)", len(text))
    if store is not None:
        store.clear([KEY_BATTLES_DATA, KEY_RESUME_META])
    return True
