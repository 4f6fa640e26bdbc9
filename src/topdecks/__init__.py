# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Top Decks: scheduled scraper that delivers deck snapshots over Telegram.

Fetches the ranked deck listing, screenshots each deck's list, bundles the
screenshots into a PDF and sends everything to a chat:
- RankedItem: one listing row with its 1-based rank
- CapturedArtifact / CombinedDocument: temporary files produced by a batch
- BatchReport: what a batch attempted, delivered and cleaned up
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .errors import ErrorKind

PLAYER_NOT_REPORTED = "Not reported"


@dataclass(frozen=True, slots=True)
class RankedItem:
    """A single deck from the listing page."""

    title: str
    url: str  # always absolute
    position: int  # 1-based rank, listing row order
    player: str = PLAYER_NOT_REPORTED


@dataclass(frozen=True, slots=True)
class CapturedArtifact:
    """Screenshot of one item's region, owned by the batch until cleanup."""

    item: RankedItem
    path: Path
    format: str = "png"


@dataclass(frozen=True, slots=True)
class CombinedDocument:
    """PDF built from the successful artifacts, one page each, rank order."""

    path: Path
    pages: tuple[CapturedArtifact, ...]
    generated_at: datetime

    @property
    def page_count(self) -> int:
        return len(self.pages)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    timestamp: datetime
    title: str
    url: str


@dataclass(frozen=True, slots=True)
class CardEntry:
    name: str
    count: str


@dataclass(frozen=True, slots=True)
class ItemDetails:
    """Card breakdown of a deck page.

    ``available=False`` marks a page that could not be read; ``reason`` says why.
    """

    url: str
    cards: tuple[CardEntry, ...] = ()
    available: bool = True
    reason: str = ""

    @property
    def total_cards(self) -> int:
        return len(self.cards)

    @classmethod
    def unavailable(cls, url: str, reason: str) -> ItemDetails:
        return cls(url=url, available=False, reason=reason)


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    """Result of processing one ranked item inside a batch."""

    item: RankedItem
    artifact: CapturedArtifact | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.artifact is not None and self.error_kind is None


@dataclass
class BatchReport:
    """Summary of one end-to-end batch run."""

    batch_id: str
    items: list[RankedItem] = field(default_factory=list)
    outcomes: list[ItemOutcome] = field(default_factory=list)
    document: CombinedDocument | None = None
    warnings: list[str] = field(default_factory=list)
    history_written: bool = False
    removed_files: int = 0
    failed: bool = False  # whole-batch failure (listing or unexpected error)

    @property
    def delivered(self) -> list[CapturedArtifact]:
        return [o.artifact for o in self.outcomes if o.ok]

    @property
    def skipped(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]


__all__ = [
    "PLAYER_NOT_REPORTED",
    "BatchReport",
    "CapturedArtifact",
    "CardEntry",
    "CombinedDocument",
    "HistoryEntry",
    "ItemDetails",
    "ItemOutcome",
    "RankedItem",
]
