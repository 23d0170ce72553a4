"""Tests for the command-line entry point."""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Iterator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from pplx_agent import __version__
from pplx_agent.cli import app
from pplx_agent.settings import SETTINGS_FILENAME

runner = CliRunner()


@pytest.fixture
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PPLX_API_KEY", raising=False)
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield tmp_path
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_missing_api_key_exits(self, isolated: Path):
        result = runner.invoke(app, ["--config", str(isolated / "absent.toml")])
        assert result.exit_code == 1
        assert "Missing PPLX_API_KEY" in result.output

    def test_invalid_config_exits(self, isolated: Path):
        config = isolated / "bad.toml"
        config.write_text("timeout = 'soon'\n")
        result = runner.invoke(app, ["--config", str(config)])
        assert result.exit_code == 1
        assert "Invalid config file" in result.output

    def test_root_must_be_a_directory(self, isolated: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PPLX_API_KEY", "pplx-test")
        result = runner.invoke(app, [str(isolated / "missing"), "--config", str(isolated / "absent.toml")])
        assert result.exit_code == 1
        assert "Not a directory" in result.output

    def test_init_config_writes_file(self, isolated: Path):
        target = isolated / "conf" / "config.toml"
        result = runner.invoke(app, ["--init-config", "--config", str(target)])
        assert result.exit_code == 0
        with open(target, "rb") as f:
            data = tomllib.load(f)
        assert data["api_key_env"] == "PPLX_API_KEY"

        again = runner.invoke(app, ["--init-config", "--config", str(target)])
        assert again.exit_code == 0
        assert "already exists" in again.output

    def test_saved_key_does_not_replace_environment(self, isolated: Path):
        (isolated / SETTINGS_FILENAME).write_text(json.dumps({"apiKey": "pplx-saved"}))
        result = runner.invoke(app, [str(isolated), "--config", str(isolated / "absent.toml")])
        assert result.exit_code == 1
        assert "Missing PPLX_API_KEY" in result.output
