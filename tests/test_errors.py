# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the error taxonomy: hierarchy, kinds, skip-versus-abort mapping."""

from __future__ import annotations

import pytest

from topdecks.errors import (
    AssemblyError,
    CaptureError,
    ConfigError,
    DeliveryError,
    ErrorKind,
    ExtractionError,
    NavigationError,
    NavigationTimeoutError,
    ResourceReleaseError,
    SaveVerificationError,
    SelectorTimeoutError,
    TopDecksError,
    error_kind,
    is_item_scoped,
)

# ── Hierarchy ────────────────────────────────────────────────────────


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [
            AssemblyError,
            CaptureError,
            ConfigError,
            DeliveryError,
            ExtractionError,
            NavigationError,
            ResourceReleaseError,
        ],
    )
    def test_catchable_as_base(self, cls):
        with pytest.raises(TopDecksError):
            raise cls("boom")

    def test_navigation_timeout_is_navigation_error(self):
        assert issubclass(NavigationTimeoutError, NavigationError)

    def test_save_verification_is_capture_error(self):
        assert issubclass(SaveVerificationError, CaptureError)

    def test_selector_timeout_carries_selector(self):
        err = SelectorTimeoutError("not found", selector=".decklist-container")
        assert err.selector == ".decklist-container"
        assert "not found" in str(err)

    def test_navigation_error_carries_url(self):
        err = NavigationTimeoutError("slow", url="https://example.com")
        assert err.url == "https://example.com"


# ── Kinds ────────────────────────────────────────────────────────────


class TestErrorKind:
    def test_distinct_kinds_for_timeouts(self):
        assert NavigationTimeoutError("x").kind == ErrorKind.NAVIGATION_TIMEOUT
        assert SelectorTimeoutError("x", selector="a").kind == ErrorKind.SELECTOR_TIMEOUT
        assert NavigationTimeoutError("x").kind != SelectorTimeoutError("x", selector="a").kind

    def test_save_verification_distinct_from_capture(self):
        assert SaveVerificationError("x").kind == ErrorKind.SAVE_VERIFICATION_FAILED
        assert CaptureError("x").kind == ErrorKind.CAPTURE_FAILED

    def test_foreign_exception_is_unexpected(self):
        assert error_kind(ValueError("x")) == ErrorKind.UNEXPECTED

    def test_error_kind_of_topdecks_error(self):
        assert error_kind(AssemblyError("x")) == ErrorKind.ASSEMBLY_FAILED

    def test_kind_values_are_strings(self):
        assert ErrorKind.SELECTOR_TIMEOUT == "selector_timeout"


class TestExtractionCauseKind:
    def test_cause_kind_from_chained_error(self):
        try:
            try:
                raise SelectorTimeoutError("no table", selector="table a")
            except SelectorTimeoutError as inner:
                raise ExtractionError("Failed to fetch decks") from inner
        except ExtractionError as exc:
            assert exc.kind == ErrorKind.EXTRACTION_FAILED
            assert exc.cause_kind == ErrorKind.SELECTOR_TIMEOUT

    def test_cause_kind_without_cause(self):
        assert ExtractionError("x").cause_kind == ErrorKind.EXTRACTION_FAILED


# ── Skip vs abort ────────────────────────────────────────────────────


class TestItemScoped:
    @pytest.mark.parametrize(
        "kind",
        [
            ErrorKind.NAVIGATION_TIMEOUT,
            ErrorKind.NAVIGATION_FAILED,
            ErrorKind.SELECTOR_TIMEOUT,
            ErrorKind.CAPTURE_FAILED,
            ErrorKind.SAVE_VERIFICATION_FAILED,
            ErrorKind.DELIVERY_FAILED,
            ErrorKind.BROWSER_LAUNCH_FAILED,
            ErrorKind.UNEXPECTED,
        ],
    )
    def test_item_failures_skip(self, kind):
        assert is_item_scoped(kind) is True

    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.EXTRACTION_FAILED, ErrorKind.ASSEMBLY_FAILED, ErrorKind.CONFIG_INVALID],
    )
    def test_batch_failures_abort(self, kind):
        assert is_item_scoped(kind) is False
