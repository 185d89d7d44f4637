"""Tests for the command-line entry point."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

import chatterm.cli as cli_module
from chatterm import __version__
from chatterm.config import ChatConfig

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.setattr("chatterm.config.load_dotenv", lambda **kwargs: False)
    monkeypatch.setattr(ChatConfig, "default_path", classmethod(lambda cls: tmp_path / "absent.toml"))
    monkeypatch.setattr(cli_module, "configure_logging", lambda config: None)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


def test_version():
    result = runner.invoke(cli_module.app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_missing_credential_exits_nonzero(monkeypatch):
    called = []

    async def fake_run_tui(config, client):
        called.append(config)
        return ""

    monkeypatch.setattr(cli_module, "run_tui", fake_run_tui)

    result = runner.invoke(cli_module.app, [])
    assert result.exit_code == 1
    assert "ANTHROPIC_API_KEY is not set" in result.output
    assert called == []


def test_quit_prints_unsent_input(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    seen = {}

    async def fake_run_tui(config, client):
        seen["api_key"] = config.api_key
        return "half-typed question"

    monkeypatch.setattr(cli_module, "run_tui", fake_run_tui)

    result = runner.invoke(cli_module.app, [])
    assert result.exit_code == 0
    assert "half-typed question" in result.output
    assert seen["api_key"] == "sk-test"


def test_startup_check_failure(monkeypatch):
    from chatterm.exceptions import ConnectionError

    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("CHATTERM_CHECK_ON_STARTUP", "true")

    def failing_probe(self):
        raise ConnectionError("Connection failed: refused", host="api.anthropic.com")

    async def fake_run_tui(config, client):
        raise AssertionError("UI must not start")

    monkeypatch.setattr(cli_module.CompletionClient, "probe", failing_probe)
    monkeypatch.setattr(cli_module, "run_tui", fake_run_tui)

    result = runner.invoke(cli_module.app, [])
    assert result.exit_code == 1
    assert "Service check failed" in result.output
