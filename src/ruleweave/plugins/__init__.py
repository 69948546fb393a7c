"""Builtin plugins."""

from __future__ import annotations

from ruleweave.engine.types import Plugin
from ruleweave.plugins.ast import ast_plugin
from ruleweave.plugins.dependency import dependency_plugin
from ruleweave.plugins.engine import engine_plugin
from ruleweave.plugins.filesystem import filesystem_plugin
from ruleweave.plugins.patterns import patterns_plugin


def builtin_plugins() -> list[Plugin]:
    """Every plugin shipped with ruleweave, in registration order."""
    return [
        engine_plugin(),
        ast_plugin(),
        patterns_plugin(),
        dependency_plugin(),
        filesystem_plugin(),
    ]


__all__ = ["builtin_plugins"]
