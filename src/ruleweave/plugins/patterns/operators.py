"""Operators over pattern fact results."""

from __future__ import annotations

import logging
import re
from typing import Any

from ruleweave.engine.types import OperatorDefn
from ruleweave.plugins.patterns.analysis import parse_flags

logger = logging.getLogger(__name__)

_SLASH_PATTERN_RE = re.compile(r"^/(.*)/([a-z]*)$", re.DOTALL)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _compare(value: float, threshold: float, comparison: str) -> bool:
    if comparison == "lte":
        return value <= threshold
    return value >= threshold


def _threshold_spec(compare_value: Any, *keys: str) -> tuple[float, str, Any] | None:
    """``(threshold, comparison, pattern)`` from a number or a dict; None if malformed."""
    if _is_number(compare_value):
        return float(compare_value), "gte", None
    if not isinstance(compare_value, dict):
        return None
    for key in keys:
        if _is_number(compare_value.get(key)):
            comparison = compare_value.get("comparison") or "gte"
            if comparison not in {"gte", "lte"}:
                return None
            return float(compare_value[key]), comparison, compare_value.get("pattern")
    return None


def file_contains(fact_value: Any, expected: Any) -> bool:
    """True when a ``repoFileAnalysis`` result holds at least one match.

    *expected* may be ``False`` to invert the check ("file must not be
    clean").
    """
    if isinstance(fact_value, dict):
        matches = fact_value.get("result")
    else:
        matches = fact_value
    if not isinstance(matches, list):
        return False
    has_matches = len(matches) > 0
    return has_matches if expected is not False else not has_matches


def regex_match(fact_value: Any, pattern: Any) -> bool:
    """True when *pattern* (plain or ``/pattern/flags``) matches ``str(fact_value)``."""
    if fact_value is None or not isinstance(pattern, str):
        return False
    flags = 0
    source = pattern
    slash = _SLASH_PATTERN_RE.match(pattern)
    if slash:
        source, flags = slash.group(1), parse_flags(slash.group(2))
    try:
        return re.search(source, str(fact_value), flags) is not None
    except re.error as exc:
        logger.warning("Invalid regexMatch pattern %r: %s", pattern, exc)
        return False


def global_pattern_count(fact_value: Any, compare_value: Any) -> bool:
    """Compare one pattern's count, or the new-pattern total, with a threshold.

    *compare_value* is a number or ``{"threshold", "comparison", "pattern"}``.
    Without ``pattern`` the new-pattern total is used when new patterns were
    analyzed, otherwise the first listed pattern's count.
    """
    if not isinstance(fact_value, dict) or not isinstance(fact_value.get("summary"), dict):
        return False
    spec = _threshold_spec(compare_value, "threshold", "value")
    if spec is None:
        return False
    threshold, comparison, pattern = spec

    summary = fact_value["summary"]
    counts = fact_value.get("matchCounts") or {}
    pattern_data = fact_value.get("patternData") or []
    if pattern is not None:
        if pattern not in counts:
            return False
        count = counts[pattern]
    elif summary.get("newPatternCounts"):
        count = summary.get("newPatternsTotal", 0)
    elif pattern_data and isinstance(pattern_data[0], dict):
        count = pattern_data[0].get("count", 0)
    else:
        return False

    if not _is_number(count):
        return False
    return _compare(float(count), threshold, comparison)


def pattern_ratio(fact_value: dict[str, Any]) -> float | None:
    """``new / (new + legacy)``; 0.0 when both are zero, None when undeterminable."""
    summary = fact_value.get("summary") or {}
    if summary.get("newPatternCounts") or summary.get("legacyPatternCounts"):
        new_total = summary.get("newPatternsTotal", 0)
        legacy_total = summary.get("legacyPatternsTotal", 0)
    else:
        pattern_data = fact_value.get("patternData") or []
        if len(pattern_data) < 2:
            return None
        new_total = pattern_data[0].get("count", 0)
        legacy_total = pattern_data[1].get("count", 0)

    if not _is_number(new_total) or not _is_number(legacy_total):
        return None
    denominator = new_total + legacy_total
    if denominator == 0:
        return 0.0
    return new_total / denominator


def global_pattern_ratio(fact_value: Any, compare_value: Any) -> bool:
    """Compare the new/legacy adoption ratio with a threshold (``gte`` by default)."""
    if not isinstance(fact_value, dict):
        return False
    spec = _threshold_spec(compare_value, "value", "threshold")
    if spec is None:
        return False
    threshold, comparison, _ = spec
    try:
        ratio = pattern_ratio(fact_value)
    except (AttributeError, TypeError):
        return False
    if ratio is None:
        return False
    logger.debug("Pattern ratio %.3f %s %.3f", ratio, comparison, threshold)
    return _compare(ratio, threshold, comparison)


PATTERN_OPERATORS: tuple[OperatorDefn, ...] = (
    OperatorDefn(name="fileContains", fn=file_contains, description="Pattern analysis found matches"),
    OperatorDefn(name="regexMatch", fn=regex_match, description="Regex matches the fact value"),
    OperatorDefn(
        name="globalPatternCount",
        fn=global_pattern_count,
        description="Repository-wide pattern count against a threshold",
    ),
    OperatorDefn(
        name="globalPatternRatio",
        fn=global_pattern_ratio,
        description="New/legacy pattern adoption ratio against a threshold",
    ),
)
