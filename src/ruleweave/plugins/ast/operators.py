"""Operators over AST fact results."""

from __future__ import annotations

import logging
from typing import Any

from ruleweave.engine.types import OperatorDefn

logger = logging.getLogger(__name__)

# Operational symmetry is "good" when high, so it fails by dropping below.
_LOWER_IS_WORSE = frozenset({"operationalSymmetry"})


def ast_complexity(fact_value: Any, thresholds: Any) -> bool:
    """True if any function exceeds its complexity thresholds.

    With ``True`` the fact's own per-metric ``exceedsThresholds`` flags are
    OR'd (the limits come from the fact's ``params.thresholds``); ``False``
    never matches.  A dict of ``{metric: limit}`` compares only the named
    metrics directly.
    """
    if not isinstance(fact_value, dict):
        return False
    complexities = fact_value.get("complexities")
    if not isinstance(complexities, list):
        return False

    if isinstance(thresholds, bool):
        if not thresholds:
            return False
        for function in complexities:
            flags = function.get("exceedsThresholds") if isinstance(function, dict) else None
            if isinstance(flags, dict) and any(flags.values()):
                logger.debug("Function %s exceeds thresholds: %s", function.get("name"), flags)
                return True
        return False

    if not isinstance(thresholds, dict):
        return False

    for function in complexities:
        metrics = function.get("metrics") if isinstance(function, dict) else None
        if not isinstance(metrics, dict):
            continue
        for name, limit in thresholds.items():
            value = metrics.get(name)
            if isinstance(value, (int, float)) and isinstance(limit, (int, float)) and value >= limit:
                logger.debug(
                    "Function %s exceeds %s: %s >= %s",
                    function.get("name"),
                    name,
                    value,
                    limit,
                )
                return True
    return False


def function_count(fact_value: Any, threshold: Any) -> bool:
    if isinstance(fact_value, bool) or not isinstance(fact_value, (int, float)):
        return False
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        return False
    return fact_value >= threshold


def code_rhythm_threshold(fact_value: Any, limits: Any) -> bool:
    """True when any named rhythm metric crosses its limit.

    *fact_value* is the ``codeRhythm`` result (``{"metrics": {...}}``) or the
    bare metrics dict; *limits* maps metric names to numbers.
    """
    if not isinstance(fact_value, dict) or not isinstance(limits, dict):
        return False
    metrics = fact_value.get("metrics", fact_value)
    if not isinstance(metrics, dict):
        return False

    for name, limit in limits.items():
        value = metrics.get(name)
        if not isinstance(value, (int, float)) or not isinstance(limit, (int, float)):
            continue
        if name in _LOWER_IS_WORSE:
            if value < limit:
                return True
        elif value > limit:
            return True
    return False


AST_OPERATORS: tuple[OperatorDefn, ...] = (
    OperatorDefn(
        name="astComplexity",
        fn=ast_complexity,
        description="Any function meets or exceeds a complexity threshold",
    ),
    OperatorDefn(name="functionCount", fn=function_count, description="Function count at or above a limit"),
    OperatorDefn(
        name="codeRhythmThreshold",
        fn=code_rhythm_threshold,
        description="A code-rhythm metric crosses its limit",
    ),
)
