# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Application configuration from ``.env`` + ``TOPDECKS_*`` environment variables.

Precedence (highest first): CLI flags (applied by cli.py via ``with_overrides``),
process environment, ``.env`` file, defaults below.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import dotenv_values

from .browser_session import BrowserConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://limitlesstcg.com"
DEFAULT_LISTING_PATH = "/decks"
DEFAULT_ROW_SELECTOR = "table tbody tr"
DEFAULT_LISTING_READY_SELECTOR = "table a"
DEFAULT_REGION_SELECTOR = ".decklist-container"

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class AppConfig:
    """Resolved settings shared by the bot, the CLI and the batch."""

    bot_token: str = dataclasses.field(default="", repr=False)
    screenshots_dir: Path = Path("screenshots")
    history_file: Path = Path("history.txt")
    base_url: str = DEFAULT_BASE_URL
    listing_path: str = DEFAULT_LISTING_PATH
    row_selector: str = DEFAULT_ROW_SELECTOR
    listing_ready_selector: str = DEFAULT_LISTING_READY_SELECTOR
    region_selector: str = DEFAULT_REGION_SELECTOR
    default_limit: int = 3
    max_limit: int = 10
    delivery_delay: float = 1.0  # seconds between photo sends
    headless: bool = True
    screenshot_quality: int = 90  # only honoured for lossy formats
    document_title: str = "Top Decks - Limitless"
    log_json: bool = False
    log_level: str = "INFO"

    @property
    def listing_url(self) -> str:
        return self.base_url.rstrip("/") + self.listing_path

    def browser_config(self) -> BrowserConfig:
        return BrowserConfig(headless=self.headless)

    def require_token(self) -> str:
        if not self.bot_token:
            raise ConfigError("Bot token not configured. Set TOPDECKS_BOT_TOKEN (or BOT_TOKEN) in the environment or .env")
        return self.bot_token

    def clamp_limit(self, requested: int | None) -> int:
        """Clamp a user-supplied item count to 1..max_limit."""
        if requested is None:
            return self.default_limit
        return max(1, min(requested, self.max_limit))

    def with_overrides(self, **overrides) -> AppConfig:
        """Return a copy with non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes) if changes else self

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        *,
        dotenv_path: str | Path | None = ".env",
    ) -> AppConfig:
        """Build config from a ``.env`` file overlaid by the process environment.

        Args:
            env: Explicit mapping (tests). Defaults to ``os.environ``.
            dotenv_path: ``.env`` location, or None to skip loading it.
        """
        values: dict[str, str] = {}
        if dotenv_path is not None and Path(dotenv_path).is_file():
            values.update({k: v for k, v in dotenv_values(dotenv_path).items() if v is not None})
        values.update(os.environ if env is None else env)

        def _get(name: str) -> str:
            return values.get(f"TOPDECKS_{name}", "").strip()

        kwargs: dict = {}
        token = _get("BOT_TOKEN") or values.get("BOT_TOKEN", "").strip()
        if token:
            kwargs["bot_token"] = token

        for name, attr in (("SCREENSHOTS_DIR", "screenshots_dir"), ("HISTORY_FILE", "history_file")):
            raw = _get(name)
            if raw:
                kwargs[attr] = Path(raw).expanduser()

        for name, attr in (
            ("BASE_URL", "base_url"),
            ("LISTING_PATH", "listing_path"),
            ("ROW_SELECTOR", "row_selector"),
            ("LISTING_READY_SELECTOR", "listing_ready_selector"),
            ("REGION_SELECTOR", "region_selector"),
            ("LOG_LEVEL", "log_level"),
        ):
            raw = _get(name)
            if raw:
                kwargs[attr] = raw

        for name, attr, conv in (
            ("LIMIT", "default_limit", int),
            ("MAX_LIMIT", "max_limit", int),
            ("DELIVERY_DELAY", "delivery_delay", float),
        ):
            raw = _get(name)
            if not raw:
                continue
            try:
                kwargs[attr] = conv(raw)
            except ValueError:
                logger.warning("Ignoring malformed TOPDECKS_%s=%r, using default", name, raw)

        for name, attr in (("HEADLESS", "headless"), ("LOG_JSON", "log_json")):
            raw = _get(name).lower()
            if raw in _TRUTHY:
                kwargs[attr] = True
            elif raw in _FALSY:
                kwargs[attr] = False

        config = cls(**kwargs)
        if config.default_limit > config.max_limit:
            config = dataclasses.replace(config, default_limit=config.max_limit)
        return config
