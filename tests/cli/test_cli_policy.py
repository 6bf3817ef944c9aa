"""Tests for ``toolgate policy`` CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from toolgate.cli import main

CONFIG = """\
policy:
  allowed_tools: [read_file, write_file]
  approval_required: [write_file]
  max_actions_per_session: 2
"""


def _config(tmp_path: Path, text: str = CONFIG) -> str:
    path = tmp_path / "gate.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestPolicyShow:
    def test_table(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["policy", "show", _config(tmp_path)])
        assert result.exit_code == 0
        assert "read_file" in result.output
        assert "approval" in result.output
        assert "Max actions per session: 2" in result.output

    def test_json(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["policy", "show", _config(tmp_path), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["policy"]["approval_required"] == ["write_file"]

    def test_invalid_config(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["policy", "show", _config(tmp_path, "- nope\n")])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestPolicyCheck:
    def test_allowed(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["policy", "check", _config(tmp_path), "read_file"])
        assert result.exit_code == 0
        assert "allowed" in result.output

    def test_requires_approval(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["policy", "check", _config(tmp_path), "write_file"])
        assert result.exit_code == 0
        assert "requires_approval" in result.output

    def test_not_on_allowlist(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(main, ["policy", "check", _config(tmp_path), "send_email"])
        assert result.exit_code == 1
        assert "not on allowlist" in result.output

    def test_rate_limited(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(
            main, ["policy", "check", _config(tmp_path), "read_file", "--actions", "2"]
        )
        assert result.exit_code == 1
        assert "rate limit exceeded" in result.output
