# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Top Decks CLI: serve, run, health commands.

Usage:
    topdecks serve [--env-file FILE]
    topdecks run --chat-id ID [--limit N]      # one batch, e.g. from cron
    topdecks health

Exit codes: 0 success, 1 batch/health failure, 2 configuration error.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from telebot.async_telebot import AsyncTeleBot

from .config import AppConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)


def _load_config(args: argparse.Namespace) -> AppConfig:
    """Environment + .env, then CLI overrides."""
    config = AppConfig.from_env(dotenv_path=args.env_file)
    return config.with_overrides(
        log_level=args.log_level,
        log_json=True if args.json_logs else None,
        headless=False if args.headed else None,
        screenshots_dir=Path(args.screenshots_dir) if args.screenshots_dir else None,
        history_file=Path(args.history_file) if args.history_file else None,
    )


async def _run_once(config: AppConfig, chat_id: str, limit: int | None) -> int:
    from .batch import run_batch
    from .context import AppContext
    from .sink import TelegramSink

    bot = AsyncTeleBot(config.require_token())
    try:
        ctx = AppContext(config=config, sink=TelegramSink(bot, chat_id), chat_id=chat_id)
        report = await run_batch(ctx, config.clamp_limit(limit))
    finally:
        await bot.close_session()
    return 1 if report.failed else 0


def cmd_serve(args: argparse.Namespace, config: AppConfig) -> int:
    """Run the bot until SIGINT/SIGTERM."""
    from .bot import serve

    config.require_token()
    logger.info("Starting bot (screenshots=%s, history=%s)", config.screenshots_dir, config.history_file)
    asyncio.run(serve(config))
    return 0


def cmd_run(args: argparse.Namespace, config: AppConfig) -> int:
    """Run a single batch to one chat and exit."""
    return asyncio.run(_run_once(config, args.chat_id, args.limit))


def cmd_health(args: argparse.Namespace, config: AppConfig) -> int:
    """Print site reachability."""
    from .scraper import check_site_health

    healthy = asyncio.run(check_site_health(config=config))
    print(f"{config.base_url}: {'ok' if healthy else 'unreachable'}")
    return 0 if healthy else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="topdecks", description="Limitless top decks Telegram bot")
    parser.add_argument("--env-file", default=".env", help="dotenv file to load (default: .env)")
    parser.add_argument("--log-level", default=None, help="Log level (default: TOPDECKS_LOG_LEVEL or INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("--screenshots-dir", default=None, help="Directory for temporary screenshots/PDFs")
    parser.add_argument("--history-file", default=None, help="Append-only history file")

    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="Run the Telegram bot (long polling)")
    p_serve.set_defaults(func=cmd_serve)

    p_run = sub.add_parser("run", help="Run one batch to a chat and exit")
    p_run.add_argument("--chat-id", required=True, help="Telegram chat id to deliver to")
    p_run.add_argument("--limit", type=int, default=None, help="Number of decks (default: TOPDECKS_LIMIT or 3)")
    p_run.set_defaults(func=cmd_run)

    p_health = sub.add_parser("health", help="Check whether the deck site answers HTTP 200")
    p_health.set_defaults(func=cmd_health)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = _load_config(args)

    from .logging_config import configure as configure_logging

    configure_logging(json_output=config.log_json, level=config.log_level)

    try:
        return args.func(args, config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
