"""Shared test fixtures for ruleweave."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from ruleweave.engine.almanac import Almanac
from ruleweave.engine.registry import PluginRegistry
from ruleweave.plugins import builtin_plugins

if TYPE_CHECKING:
    from pathlib import Path


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture()
def registry() -> PluginRegistry:
    """A registry holding every builtin plugin."""
    reg = PluginRegistry()
    for plugin in builtin_plugins():
        reg.register(plugin)
    return reg


@pytest.fixture()
def make_almanac(registry: PluginRegistry) -> Any:
    def _make(**base_facts: Any) -> Almanac:
        return Almanac(registry, base_facts)

    return _make


@pytest.fixture()
def tmp_repo(tmp_path: Path) -> Path:
    """A small JavaScript repository."""
    repo = tmp_path / "repo"
    (repo / "src" / "components").mkdir(parents=True)
    (repo / "README.md").write_text("# demo\n", encoding="utf-8")
    (repo / "src" / "index.js").write_text(
        "import api from './api';\nconsole.log(api);\n", encoding="utf-8"
    )
    (repo / "src" / "components" / "Button.jsx").write_text(
        "export function Button(props) {\n  return props.label;\n}\n", encoding="utf-8"
    )
    return repo


@pytest.fixture()
def local_config(tmp_path: Path) -> Path:
    """A local config directory with one archetype and its rules."""
    config = tmp_path / "config"
    write_json(
        config / "demo.json",
        {
            "name": "demo",
            "rules": ["no-console", "missing-readme"],
            "facts": [],
            "operators": [],
            "config": {
                "minimumDependencyVersions": {},
                "standardStructure": {"src": {"components": None}},
                "blacklistPatterns": [r".*/node_modules/.*"],
                "whitelistPatterns": [],
                "requiredFiles": ["README.md"],
            },
        },
    )
    write_json(
        config / "rules" / "no-console-rule.json",
        {
            "name": "no-console",
            "conditions": {
                "all": [
                    {
                        "fact": "repoFileAnalysis",
                        "params": {"checkPattern": [r"console\.log"], "resultFact": "consoleMatches"},
                        "operator": "fileContains",
                        "value": True,
                    }
                ]
            },
            "event": {"type": "warning", "params": {"message": "console.log found"}},
        },
    )
    write_json(
        config / "rules" / "missing-readme-rule.json",
        {
            "name": "missing-readme",
            "conditions": {
                "all": [
                    {
                        "fact": "missingRequiredFiles",
                        "params": {"requiredFiles": ["README.md", "CONTRIBUTING.md"]},
                        "operator": "missingRequiredFiles",
                        "value": True,
                    }
                ]
            },
            "event": {"type": "fatality", "params": {"message": "Required files are missing"}},
        },
    )
    return config
