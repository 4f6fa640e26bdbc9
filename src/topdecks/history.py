# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Append-only delivery history: one ``[timestamp] title - url`` line per item.

Lines are free-form text with no schema; readers must tolerate anything.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from . import HistoryEntry, RankedItem

logger = logging.getLogger(__name__)

# Locale-dependent date and time, e.g. "10/19/26 14:03:11".
TIMESTAMP_FORMAT = "%x %X"


def format_entry(entry: HistoryEntry) -> str:
    """One line per entry; line breaks inside the title are folded into spaces."""
    title = " ".join(entry.title.split())
    return f"[{entry.timestamp.strftime(TIMESTAMP_FORMAT)}] {title} - {entry.url}"


def entries_for(items: Iterable[RankedItem], now: datetime | None = None) -> list[HistoryEntry]:
    now = now or datetime.now()
    return [HistoryEntry(timestamp=now, title=item.title, url=item.url) for item in items]


def append_history(path: Path, items: Iterable[RankedItem], now: datetime | None = None) -> bool:
    """Append one line per item. Returns False (and logs) when the write fails."""
    entries = entries_for(items, now)
    if not entries:
        return True
    text = "".join(format_entry(e) + "\n" for e in entries)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(text)
    except OSError:
        logger.error("Failed to save history to %s", path, exc_info=True)
        return False
    logger.debug("History: %d entries appended to %s", len(entries), path)
    return True


async def append_history_async(path: Path, items: Iterable[RankedItem], now: datetime | None = None) -> bool:
    return await asyncio.to_thread(append_history, path, list(items), now)


def read_recent(path: Path, limit: int = 10) -> list[str]:
    """Last *limit* non-empty lines of the history file (oldest first)."""
    if limit <= 0:
        return []
    try:
        with path.open(encoding="utf-8", errors="replace") as fh:
            return list(deque((line.rstrip("\n") for line in fh if line.strip()), maxlen=limit))
    except FileNotFoundError:
        return []
