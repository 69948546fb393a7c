"""Tests for ruleweave.cli — the ``check`` and ``plugins`` commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from click.testing import CliRunner

from ruleweave import __version__
from ruleweave.cli import main

if TYPE_CHECKING:
    from pathlib import Path


def _check_args(repo: Path, config: Path, *extra: str) -> list[str]:
    return ["-q", "check", "--dir", str(repo), "--archetype", "demo", "--local-config", str(config), *extra]


class TestCheck:
    def test_porcelain_is_default_when_piped(self, tmp_repo: Path, local_config: Path) -> None:
        result = CliRunner().invoke(main, _check_args(tmp_repo, local_config))
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert "warning:no-console:src/index.js:console.log found" in lines
        assert "fatality:missing-readme:REPO_GLOBAL_CHECK:Required files are missing" in lines

    def test_json(self, tmp_repo: Path, local_config: Path) -> None:
        result = CliRunner().invoke(main, _check_args(tmp_repo, local_config, "--format", "json"))
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["archetype"] == "demo"
        assert data["counts"]["fatality"] == 1

    def test_strict_fails_on_fatality(self, tmp_repo: Path, local_config: Path) -> None:
        result = CliRunner().invoke(main, _check_args(tmp_repo, local_config, "--strict"))
        assert result.exit_code == 1

    def test_config_source_required(self, tmp_repo: Path) -> None:
        result = CliRunner().invoke(main, ["check", "--dir", str(tmp_repo)])
        assert result.exit_code == 2
        assert "--config-server or --local-config" in result.output

    def test_unknown_archetype(self, tmp_repo: Path, local_config: Path) -> None:
        args = ["-q", "check", "--dir", str(tmp_repo), "-a", "nope", "--local-config", str(local_config)]
        result = CliRunner().invoke(main, args)
        assert result.exit_code == 2
        assert "nope" in result.output


class TestPlugins:
    def test_json(self) -> None:
        result = CliRunner().invoke(main, ["plugins", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [p["name"] for p in data] == [
            "ruleweave-engine",
            "ruleweave-ast",
            "ruleweave-patterns",
            "ruleweave-dependency",
            "ruleweave-filesystem",
        ]
        facts = {f["name"]: f["kind"] for p in data for f in p["facts"]}
        assert facts["repoDependencyVersions"] == "global"
        assert facts["missingRequiredFiles"] == "global-function"

    def test_table(self) -> None:
        result = CliRunner().invoke(main, ["plugins"])
        assert result.exit_code == 0
        assert "fileContains" in result.output


def test_version() -> None:
    result = CliRunner().invoke(main, ["--version"])
    assert __version__ in result.output
