"""Filesystem plugin: required files and directory-structure conformance."""

from __future__ import annotations

from ruleweave.engine.types import Plugin
from ruleweave.plugins.filesystem.facts import FILESYSTEM_FACTS
from ruleweave.plugins.filesystem.operators import FILESYSTEM_OPERATORS


def filesystem_plugin() -> Plugin:
    return Plugin(
        name="ruleweave-filesystem",
        version="1.0.0",
        facts=FILESYSTEM_FACTS,
        operators=FILESYSTEM_OPERATORS,
        description="Required-file fact and directory-structure operators",
    )


__all__ = ["filesystem_plugin"]
