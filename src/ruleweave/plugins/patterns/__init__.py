"""Pattern plugin: per-file regex matches and repository-wide pattern statistics."""

from __future__ import annotations

from ruleweave.engine.types import Plugin
from ruleweave.plugins.patterns.facts import PATTERN_FACTS
from ruleweave.plugins.patterns.operators import PATTERN_OPERATORS


def patterns_plugin() -> Plugin:
    return Plugin(
        name="ruleweave-patterns",
        version="1.0.0",
        facts=PATTERN_FACTS,
        operators=PATTERN_OPERATORS,
        description="Regex facts and count/ratio operators",
    )


__all__ = ["patterns_plugin"]
