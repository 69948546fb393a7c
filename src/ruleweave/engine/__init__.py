"""Rule engine: plugin registry, almanac, condition walker and shared records.

The analyzer lives in :mod:`ruleweave.engine.analyzer` and is not re-exported
here because it depends on :mod:`ruleweave.infrastructure`, which itself
imports :mod:`ruleweave.engine.types`.
"""

from ruleweave.engine.almanac import Almanac
from ruleweave.engine.conditions import (
    ConditionError,
    evaluate_conditions,
    referenced_names,
    resolve_path,
    result_fact_names,
)
from ruleweave.engine.registry import (
    NotRegisteredError,
    PluginError,
    PluginRegistry,
    default_error_handler,
)
from ruleweave.engine.types import (
    REPO_GLOBAL_CHECK,
    FactDefn,
    FileRecord,
    OperatorDefn,
    Plugin,
    PluginDiagnostic,
    RuleFailure,
    global_record,
)

__all__ = [
    "REPO_GLOBAL_CHECK",
    "Almanac",
    "ConditionError",
    "FactDefn",
    "FileRecord",
    "NotRegisteredError",
    "OperatorDefn",
    "Plugin",
    "PluginDiagnostic",
    "PluginError",
    "PluginRegistry",
    "RuleFailure",
    "default_error_handler",
    "evaluate_conditions",
    "global_record",
    "referenced_names",
    "resolve_path",
    "result_fact_names",
]
