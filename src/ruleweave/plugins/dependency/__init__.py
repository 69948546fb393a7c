"""Dependency plugin: lockfile versions checked against archetype minimums."""

from __future__ import annotations

from ruleweave.engine.types import Plugin
from ruleweave.plugins.dependency.facts import DEPENDENCY_FACTS
from ruleweave.plugins.dependency.operators import DEPENDENCY_OPERATORS


def dependency_plugin() -> Plugin:
    return Plugin(
        name="ruleweave-dependency",
        version="1.0.0",
        facts=DEPENDENCY_FACTS,
        operators=DEPENDENCY_OPERATORS,
        description="Installed dependency versions and the outdatedFramework operator",
    )


__all__ = ["dependency_plugin"]
