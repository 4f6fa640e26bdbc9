# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import topdecks  # noqa: F401
except ImportError:
    raise ImportError("topdecks is not installed. Run: pip install -e '.[dev]'") from None

from pathlib import Path

import pytest

from topdecks.config import AppConfig


@pytest.fixture(autouse=True)
def _block_real_browser(request, monkeypatch):
    """Safety net: prevent real Chromium launches in unit tests.

    Tests that need a browser should patch ``topdecks.browser_session.async_playwright``
    (or the scraper's ``open_browser``/``open_page``) explicitly. Opt out with::

        @pytest.mark.allow_real_browser
    """
    if "allow_real_browser" in request.keywords:
        return

    def _no_real_playwright():
        raise RuntimeError(
            "Test tried to launch a real browser. Patch 'topdecks.browser_session.async_playwright' in your test."
        )

    monkeypatch.setattr("topdecks.browser_session.async_playwright", _no_real_playwright)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Config writing into tmp_path, no inter-delivery delay."""
    return AppConfig(
        bot_token="123:test-token",
        screenshots_dir=tmp_path / "screenshots",
        history_file=tmp_path / "history.txt",
        delivery_delay=0,
    )


class FakeSink:
    """DeliverySink that records every call. Set ``fail_*`` attributes to inject errors."""

    def __init__(self) -> None:
        self.texts: list[str] = []
        self.photos: list[tuple[Path, str]] = []
        self.documents: list[tuple[Path, str, str, bytes]] = []
        self.deleted: list[int] = []
        self.fail_photo_captions: tuple[str, ...] = ()  # substrings of captions to reject
        self.fail_document = False
        self.fail_text = False
        self._next_id = 1000

    async def send_text(self, text: str) -> int:
        from topdecks.errors import DeliveryError

        if self.fail_text:
            raise DeliveryError("text rejected")
        self.texts.append(text)
        self._next_id += 1
        return self._next_id

    async def send_photo(self, path: Path, caption: str) -> None:
        from topdecks.errors import DeliveryError

        if any(s in caption for s in self.fail_photo_captions):
            raise DeliveryError(f"photo rejected: {caption}")
        assert path.is_file(), f"photo sent after its file was removed: {path}"
        self.photos.append((path, caption))

    async def send_document(self, path: Path, filename: str, caption: str) -> None:
        from topdecks.errors import DeliveryError

        if self.fail_document:
            raise DeliveryError("document rejected")
        self.documents.append((path, filename, caption, path.read_bytes()))

    async def delete_message(self, message_id: int) -> None:
        self.deleted.append(message_id)


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def png_factory(tmp_path: Path):
    """Write real, decodable PNGs (Pillow) and return their paths."""
    from PIL import Image

    def _make(name: str, size: tuple[int, int] = (120, 80), directory: Path | None = None) -> Path:
        directory = directory or tmp_path / "screenshots"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        Image.new("RGB", size, "white").save(path, format="PNG")
        return path

    return _make
