# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Telegram command table and long-polling service.

Commands:
    /start, /help         greeting and usage
    /topdecks [N]         run a batch for the top N decks (default from config)
    /health               is the deck site reachable?
    /deck <url>           card breakdown of one deck page
    /history              last delivered entries

SIGINT/SIGTERM stop polling and close the bot's HTTP session.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from contextlib import suppress
from urllib.parse import urlparse

import telebot
from telebot.async_telebot import AsyncTeleBot
from telebot.types import Message
from telebot.util import extract_arguments

from . import ItemDetails
from .batch import run_batch
from .config import AppConfig
from .context import AppContext
from .history import read_recent
from .scraper import absolute_url, check_site_health, fetch_item_details
from .sink import TelegramSink

logger = logging.getLogger(__name__)

HISTORY_LINES = 10
MAX_CARD_LINES = 60

MSG_START = "🎴 Hi! I'm the Limitless deck bot. Use /topdecks to see the best decks."
MSG_HELP = """🤖 Available commands:

/topdecks [N] - Fetch the top N decks from Limitless (default {default}, max {maximum})
/health - Check whether Limitless is reachable
/deck <url> - List the cards of one deck
/history - Show the latest delivered decks
/help - Show this help message"""


class _LoggingExceptionHandler(telebot.ExceptionHandler):
    """Last-resort handler for errors escaping the polling loop."""

    def handle(self, exception: Exception) -> bool:
        logger.error("Unhandled bot error: %s", exception, exc_info=exception)
        return True


def parse_limit(text: str | None) -> int | None:
    """Integer argument of '/topdecks N', or None when absent or not a number."""
    args = (extract_arguments(text or "") or "").strip()
    if not args:
        return None
    try:
        return int(args.split()[0])
    except ValueError:
        return None


def resolve_deck_url(text: str | None, base_url: str) -> str | None:
    """URL argument of '/deck <url>', restricted to the configured site."""
    arg = (extract_arguments(text or "") or "").strip()
    if not arg:
        return None
    url = absolute_url(arg.split()[0], base_url)
    if urlparse(url).hostname != urlparse(base_url).hostname:
        return None
    return url


def format_details(details: ItemDetails) -> str:
    if not details.available:
        return f"❌ Deck details unavailable: {details.reason}"
    lines = [f"🃏 {details.total_cards} card entries"]
    lines.extend(f"{card.count} {card.name}".strip() for card in details.cards[:MAX_CARD_LINES])
    if details.total_cards > MAX_CARD_LINES:
        lines.append(f"... and {details.total_cards - MAX_CARD_LINES} more")
    return "\n".join(lines)


def register_handlers(bot: AsyncTeleBot, config: AppConfig) -> None:
    """Attach the command handlers; each builds its own AppContext."""

    def _context(message: Message) -> AppContext:
        return AppContext(
            config=config,
            sink=TelegramSink(bot, message.chat.id),
            chat_id=str(message.chat.id),
        )

    async def on_start(message: Message) -> None:
        logger.info("User %s started the bot", message.from_user.id if message.from_user else "?")
        await bot.reply_to(message, MSG_START)

    async def on_help(message: Message) -> None:
        await bot.reply_to(message, MSG_HELP.format(default=config.default_limit, maximum=config.max_limit))

    async def on_topdecks(message: Message) -> None:
        limit = config.clamp_limit(parse_limit(message.text))
        logger.info("/topdecks from chat %s (limit=%d)", message.chat.id, limit)
        await run_batch(_context(message), limit)

    async def on_health(message: Message) -> None:
        healthy = await check_site_health(config=config)
        await bot.reply_to(message, "✅ Limitless is reachable." if healthy else "❌ Limitless is not reachable.")

    async def on_deck(message: Message) -> None:
        url = resolve_deck_url(message.text, config.base_url)
        if url is None:
            await bot.reply_to(message, f"Usage: /deck <deck url on {config.base_url}>")
            return
        details = await fetch_item_details(url, config=config)
        await bot.reply_to(message, format_details(details))

    async def on_history(message: Message) -> None:
        lines = await asyncio.to_thread(read_recent, config.history_file, HISTORY_LINES)
        await bot.reply_to(message, "\n".join(lines) if lines else "No history yet.")

    bot.register_message_handler(on_start, commands=["start"])
    bot.register_message_handler(on_help, commands=["help"])
    bot.register_message_handler(on_topdecks, commands=["topdecks"])
    bot.register_message_handler(on_health, commands=["health"])
    bot.register_message_handler(on_deck, commands=["deck"])
    bot.register_message_handler(on_history, commands=["history"])


def create_bot(config: AppConfig) -> AsyncTeleBot:
    bot = AsyncTeleBot(config.require_token(), exception_handler=_LoggingExceptionHandler())
    register_handlers(bot, config)
    return bot


async def serve(config: AppConfig, bot: AsyncTeleBot | None = None) -> None:
    """Poll until SIGINT/SIGTERM, then stop polling and close the session."""
    bot = bot or create_bot(config)
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()

    def _request_stop(sig: signal.Signals) -> None:
        logger.info("Shutting down bot (%s)", sig.name)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_stop, sig)

    polling = asyncio.create_task(bot.infinity_polling(), name="topdecks-polling")
    stopper = asyncio.create_task(stop.wait(), name="topdecks-stop")
    logger.info("Bot running")
    polling_error: BaseException | None = None
    try:
        await asyncio.wait({polling, stopper}, return_when=asyncio.FIRST_COMPLETED)
        if polling.done() and not polling.cancelled():
            polling_error = polling.exception()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        for task in (polling, stopper):
            if not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        try:
            await bot.close_session()
        except Exception:
            logger.warning("Failed to close bot session", exc_info=True)
        logger.info("Bot stopped")

    if polling_error is not None:
        raise polling_error
