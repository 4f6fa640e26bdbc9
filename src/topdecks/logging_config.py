# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge. Interactive: ConsoleRenderer, service mode: JSONRenderer.

Every record goes through one formatter, whether it comes from a topdecks
module, telebot or Playwright. Leaf module: no topdecks imports.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from collections.abc import Iterator
from typing import TextIO

import structlog

# Third-party loggers that are chatty at INFO (polling, HTTP sessions).
_NOISY_LOGGERS = ("TeleBot", "asyncio", "PIL")


def _shared_processors() -> list:
    """Applied to structlog events and to foreign stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(json_output: bool, stream: TextIO):
    if json_output:
        # notices carry emoji; keep them readable in the journal
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    isatty = getattr(stream, "isatty", None)
    return structlog.dev.ConsoleRenderer(colors=bool(isatty and isatty()))


def _parse_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def configure(*, json_output: bool = False, level: str = "INFO", stream: TextIO | None = None) -> None:
    """Install a single structlog-formatted handler on the root logger.

    Args:
        json_output: JSON lines for the bot service (systemd journal), console
            output for a terminal.
        level: Root logger level name; unknown names fall back to INFO.
        stream: Destination, stderr by default.
    """
    stream = stream or sys.stderr
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_output, stream),
            ],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(_parse_level(level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextlib.contextmanager
def bound_context(**values) -> Iterator[None]:
    """Bind *values* (e.g. batch_id, chat_id) into every log line inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield
