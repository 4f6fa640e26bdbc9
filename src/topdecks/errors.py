# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Top Decks exception hierarchy.

All errors inherit from TopDecksError and carry an ``ErrorKind`` so callers
can decide skip-versus-abort by kind instead of by exception class alone.
Leaf module: no topdecks imports.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Failure variants reported by page operations and the batch."""

    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION_FAILED = "navigation_failed"
    SELECTOR_TIMEOUT = "selector_timeout"
    EXTRACTION_FAILED = "extraction_failed"
    CAPTURE_FAILED = "capture_failed"
    SAVE_VERIFICATION_FAILED = "save_verification_failed"
    ASSEMBLY_FAILED = "assembly_failed"
    DELIVERY_FAILED = "delivery_failed"
    RESOURCE_RELEASE_FAILED = "resource_release_failed"
    BROWSER_LAUNCH_FAILED = "browser_launch_failed"
    CONFIG_INVALID = "config_invalid"
    UNEXPECTED = "unexpected"


# Kinds that fail the whole batch; anything else only skips the current item.
_BATCH_SCOPED_KINDS = frozenset(
    {
        ErrorKind.EXTRACTION_FAILED,
        ErrorKind.ASSEMBLY_FAILED,
        ErrorKind.CONFIG_INVALID,
    }
)


class TopDecksError(Exception):
    """Base exception for all Top Decks errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED


class ConfigError(TopDecksError):
    """Missing or malformed configuration (e.g. no bot token)."""

    kind = ErrorKind.CONFIG_INVALID


class BrowserLaunchError(TopDecksError):
    """Chromium could not be started."""

    kind = ErrorKind.BROWSER_LAUNCH_FAILED


class NavigationError(TopDecksError):
    """page.goto failed for a reason other than a timeout."""

    kind = ErrorKind.NAVIGATION_FAILED

    def __init__(self, message: str, *, url: str = "") -> None:
        super().__init__(message)
        self.url = url


class NavigationTimeoutError(NavigationError):
    """Target page did not finish loading within the navigation bound."""

    kind = ErrorKind.NAVIGATION_TIMEOUT


class SelectorTimeoutError(TopDecksError):
    """Expected DOM region never appeared."""

    kind = ErrorKind.SELECTOR_TIMEOUT

    def __init__(self, message: str, *, selector: str) -> None:
        super().__init__(message)
        self.selector = selector


class ExtractionError(TopDecksError):
    """Listing could not be read. Wraps the underlying failure; no partial list."""

    kind = ErrorKind.EXTRACTION_FAILED

    @property
    def cause_kind(self) -> ErrorKind:
        return error_kind(self.__cause__) if self.__cause__ is not None else self.kind


class CaptureError(TopDecksError):
    """Region screenshot failed (region absent or the capture itself raised)."""

    kind = ErrorKind.CAPTURE_FAILED


class SaveVerificationError(CaptureError):
    """Screenshot call returned but the file is not on disk."""

    kind = ErrorKind.SAVE_VERIFICATION_FAILED


class AssemblyError(TopDecksError):
    """PDF generation failed after artifacts were produced."""

    kind = ErrorKind.ASSEMBLY_FAILED


class DeliveryError(TopDecksError):
    """The chat transport rejected a send."""

    kind = ErrorKind.DELIVERY_FAILED


class ResourceReleaseError(TopDecksError):
    """Closing a browser, page or file failed. Logged, never raised to callers."""

    kind = ErrorKind.RESOURCE_RELEASE_FAILED


def error_kind(exc: BaseException) -> ErrorKind:
    """Return the ErrorKind for any exception (UNEXPECTED for foreign errors)."""
    if isinstance(exc, TopDecksError):
        return exc.kind
    return ErrorKind.UNEXPECTED


def is_item_scoped(kind: ErrorKind) -> bool:
    """True if a failure of this kind only skips the current item."""
    return kind not in _BATCH_SCOPED_KINDS
