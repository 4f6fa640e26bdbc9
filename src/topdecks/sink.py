# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Delivery sink: the four chat operations the batch needs.

``DeliverySink`` is the protocol; ``TelegramSink`` binds it to one chat on an
``AsyncTeleBot``. Transport errors are re-raised as DeliveryError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from telebot.async_telebot import AsyncTeleBot

from .errors import DeliveryError

logger = logging.getLogger(__name__)


@runtime_checkable
class DeliverySink(Protocol):
    """Where batch output goes. One instance per chat."""

    async def send_text(self, text: str) -> int:
        """Send a message and return its id."""
        ...

    async def send_photo(self, path: Path, caption: str) -> None: ...

    async def send_document(self, path: Path, filename: str, caption: str) -> None: ...

    async def delete_message(self, message_id: int) -> None: ...


class TelegramSink:
    """DeliverySink for a single Telegram chat."""

    def __init__(self, bot: AsyncTeleBot, chat_id: int | str) -> None:
        self._bot = bot
        self.chat_id = chat_id

    async def send_text(self, text: str) -> int:
        try:
            message = await self._bot.send_message(self.chat_id, text)
        except Exception as exc:
            raise DeliveryError(f"send_message to {self.chat_id} failed: {exc}") from exc
        return message.message_id

    async def send_photo(self, path: Path, caption: str) -> None:
        try:
            with open(path, "rb") as fh:
                await self._bot.send_photo(self.chat_id, fh, caption=caption)
        except Exception as exc:
            raise DeliveryError(f"send_photo {path.name} to {self.chat_id} failed: {exc}") from exc

    async def send_document(self, path: Path, filename: str, caption: str) -> None:
        try:
            with open(path, "rb") as fh:
                await self._bot.send_document(
                    self.chat_id,
                    fh,
                    caption=caption,
                    visible_file_name=filename,
                )
        except Exception as exc:
            raise DeliveryError(f"send_document {filename} to {self.chat_id} failed: {exc}") from exc

    async def delete_message(self, message_id: int) -> None:
        try:
            await self._bot.delete_message(self.chat_id, message_id)
        except Exception as exc:
            raise DeliveryError(f"delete_message {message_id} in {self.chat_id} failed: {exc}") from exc

    def __repr__(self) -> str:
        return f"TelegramSink(chat_id={self.chat_id!r})"
