"""Operators over dependency analysis results."""

from __future__ import annotations

import logging
from typing import Any

from ruleweave.engine.types import OperatorDefn

logger = logging.getLogger(__name__)


def outdated_framework(fact_value: Any, expected: Any) -> bool:
    """True when ``repoDependencyAnalysis`` reported at least one failure.

    ``expected`` may be ``False`` to assert the opposite.
    """
    failures = fact_value.get("result") if isinstance(fact_value, dict) else fact_value
    if not isinstance(failures, list):
        return False
    outdated = len(failures) > 0
    if outdated:
        logger.debug("outdatedFramework: %d outdated dependencies", len(failures))
    return outdated if expected is not False else not outdated


DEPENDENCY_OPERATORS: tuple[OperatorDefn, ...] = (
    OperatorDefn(
        name="outdatedFramework",
        fn=outdated_framework,
        description="Dependency analysis found outdated packages",
    ),
)
