# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""AppContext: everything a command handler or batch needs, passed explicitly.

Built per command by bot.py (one sink per chat) or once by ``topdecks run``.
"""

from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Callable

from .config import AppConfig
from .sink import DeliverySink


def _new_batch_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclasses.dataclass(frozen=True, slots=True, kw_only=True)
class AppContext:
    """Per-invocation context: config (directories, limits), output sink, chat."""

    config: AppConfig
    sink: DeliverySink
    chat_id: str = ""
    new_batch_id: Callable[[], str] = dataclasses.field(default=_new_batch_id, repr=False)
