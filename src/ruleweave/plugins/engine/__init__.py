"""Engine plugin: equality, numeric and membership operators."""

from __future__ import annotations

from ruleweave.engine.types import Plugin
from ruleweave.plugins.engine.operators import ENGINE_OPERATOR_NAMES, ENGINE_OPERATORS


def engine_plugin() -> Plugin:
    return Plugin(
        name="ruleweave-engine",
        version="1.0.0",
        operators=ENGINE_OPERATORS,
        description="Equality, numeric comparison and membership operators",
    )


__all__ = ["ENGINE_OPERATOR_NAMES", "engine_plugin"]
