# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for the topdecks CLI."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from topdecks import BatchReport
from topdecks.cli import _load_config, build_parser, main


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """No token or TOPDECKS_* from the developer's shell; no real logging reconfiguration."""
    for key in ("BOT_TOKEN", "TOPDECKS_BOT_TOKEN", "TOPDECKS_LIMIT", "TOPDECKS_HEADLESS", "TOPDECKS_LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    with patch("topdecks.logging_config.configure") as configure:
        yield configure


class TestParser:
    def test_run_arguments(self):
        args = build_parser().parse_args(["run", "--chat-id", "42", "--limit", "5"])
        assert args.command == "run"
        assert args.chat_id == "42"
        assert args.limit == 5

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_run_requires_chat_id(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run"])

    def test_global_overrides(self, tmp_path):
        args = build_parser().parse_args(
            ["--headed", "--json-logs", "--log-level", "DEBUG", "--screenshots-dir", "shots", "health"]
        )
        config = _load_config(args)
        assert config.headless is False
        assert config.log_json is True
        assert config.log_level == "DEBUG"
        assert config.screenshots_dir == Path("shots")

    def test_env_file_loaded(self, tmp_path):
        (tmp_path / "custom.env").write_text("TOPDECKS_BOT_TOKEN=1:abc\nTOPDECKS_LIMIT=4\n", encoding="utf-8")
        config = _load_config(build_parser().parse_args(["--env-file", "custom.env", "health"]))
        assert config.bot_token == "1:abc"
        assert config.default_limit == 4


class TestMain:
    def test_configures_logging(self, _isolated_env):
        with patch("topdecks.scraper.check_site_health", AsyncMock(return_value=True)):
            main(["--json-logs", "health"])
        _isolated_env.assert_called_once_with(json_output=True, level="INFO")

    @pytest.mark.parametrize(("healthy", "code", "word"), [(True, 0, "ok"), (False, 1, "unreachable")])
    def test_health(self, capsys, healthy, code, word):
        with patch("topdecks.scraper.check_site_health", AsyncMock(return_value=healthy)):
            assert main(["health"]) == code
        assert capsys.readouterr().out.strip() == f"https://limitlesstcg.com: {word}"

    def test_missing_token_is_config_error(self, capsys):
        assert main(["run", "--chat-id", "42"]) == 2
        assert "TOPDECKS_BOT_TOKEN" in capsys.readouterr().err

    def test_serve_without_token(self, capsys):
        assert main(["serve"]) == 2

    @pytest.mark.parametrize(("failed", "code"), [(False, 0), (True, 1)])
    def test_run_once(self, monkeypatch, failed, code):
        monkeypatch.setenv("TOPDECKS_BOT_TOKEN", "1:abc")
        bot = MagicMock()
        bot.close_session = AsyncMock()
        run = AsyncMock(return_value=BatchReport(batch_id="b", failed=failed))
        with patch("topdecks.cli.AsyncTeleBot", return_value=bot) as bot_cls, patch("topdecks.batch.run_batch", run):
            assert main(["run", "--chat-id", "42", "--limit", "50"]) == code
        bot_cls.assert_called_once_with("1:abc")
        ctx, limit = run.await_args.args
        assert limit == 10
        assert ctx.chat_id == "42"
        bot.close_session.assert_awaited_once()

    def test_run_closes_session_on_error(self, monkeypatch):
        monkeypatch.setenv("TOPDECKS_BOT_TOKEN", "1:abc")
        bot = MagicMock()
        bot.close_session = AsyncMock()
        with (
            patch("topdecks.cli.AsyncTeleBot", return_value=bot),
            patch("topdecks.batch.run_batch", AsyncMock(side_effect=RuntimeError("boom"))),
            pytest.raises(RuntimeError),
        ):
            main(["run", "--chat-id", "42"])
        bot.close_session.assert_awaited_once()

    def test_keyboard_interrupt(self, monkeypatch):
        monkeypatch.setenv("TOPDECKS_BOT_TOKEN", "1:abc")
        with patch("topdecks.bot.serve", side_effect=KeyboardInterrupt):
            assert main(["serve"]) == 130
