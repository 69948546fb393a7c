"""Condition walker for json-rules-engine style condition trees.

Supported shapes::

    {"all": [<condition>, ...]}
    {"any": [<condition>, ...]}
    {"not": <condition>}
    {"fact": "name", "operator": "op", "value": <any>, "params": {...}, "path": "$.a.b"}

A leaf ``value`` of the form ``{"fact": "other"}`` is resolved through the
almanac before the operator runs.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ruleweave.engine.almanac import Almanac

logger = logging.getLogger(__name__)


class ConditionError(ValueError):
    """Raised for a condition node that matches none of the supported shapes."""


def resolve_path(value: Any, path: str | None) -> Any:
    """Follow a ``$.a.b[0]``-style path into *value*; ``None`` when absent."""
    if not path:
        return value
    trimmed = path[1:] if path.startswith("$") else path
    current = value
    for raw in trimmed.replace("[", ".").replace("]", "").split("."):
        if raw == "":
            continue
        if isinstance(current, dict):
            current = current.get(raw)
        elif isinstance(current, (list, tuple)) and raw.isdigit():
            index = int(raw)
            current = current[index] if index < len(current) else None
        else:
            current = getattr(current, raw, None)
        if current is None:
            return None
    return current


async def _resolve_compare_value(value: Any, almanac: Almanac) -> Any:
    if isinstance(value, dict) and set(value) <= {"fact", "params", "path"} and "fact" in value:
        resolved = await almanac.fact_value(value["fact"], value.get("params"))
        return resolve_path(resolved, value.get("path"))
    return value


async def evaluate_conditions(conditions: dict[str, Any], almanac: Almanac) -> bool:
    """Evaluate *conditions* against *almanac*.

    Facts and operators are looked up in the almanac's registry; a missing
    name propagates :class:`~ruleweave.engine.registry.NotRegisteredError`.
    """
    if not isinstance(conditions, dict):
        msg = f"Condition must be a mapping, got {type(conditions).__name__}"
        raise ConditionError(msg)

    if "all" in conditions:
        for child in conditions["all"] or []:
            if not await evaluate_conditions(child, almanac):
                return False
        return True

    if "any" in conditions:
        for child in conditions["any"] or []:
            if await evaluate_conditions(child, almanac):
                return True
        return False

    if "not" in conditions:
        return not await evaluate_conditions(conditions["not"], almanac)

    if "fact" in conditions and "operator" in conditions:
        fact_value = await almanac.fact_value(conditions["fact"], conditions.get("params"))
        fact_value = resolve_path(fact_value, conditions.get("path"))
        compare_value = await _resolve_compare_value(conditions.get("value"), almanac)
        result = await almanac.registry.invoke_operator(
            conditions["operator"], fact_value, compare_value
        )
        logger.debug(
            "Condition %s %s -> %s",
            conditions["fact"],
            conditions["operator"],
            result,
        )
        return result

    msg = f"Unsupported condition shape: keys {sorted(conditions)}"
    raise ConditionError(msg)


def referenced_names(conditions: Any) -> tuple[set[str], set[str]]:
    """Collect ``(fact_names, operator_names)`` referenced by a condition tree."""
    facts: set[str] = set()
    operators: set[str] = set()

    def walk(node: Any) -> None:
        if not isinstance(node, dict):
            return
        for key in ("all", "any"):
            for child in node.get(key) or []:
                walk(child)
        if "not" in node:
            walk(node["not"])
        if "fact" in node and "operator" in node:
            facts.add(str(node["fact"]))
            operators.add(str(node["operator"]))
            value = node.get("value")
            if isinstance(value, dict) and "fact" in value:
                facts.add(str(value["fact"]))

    walk(conditions)
    return facts, operators


def result_fact_names(conditions: Any) -> set[str]:
    """Names of runtime facts a condition tree publishes through ``params.resultFact``."""
    names: set[str] = set()

    def walk(node: Any) -> None:
        if not isinstance(node, dict):
            return
        for key in ("all", "any"):
            for child in node.get(key) or []:
                walk(child)
        if "not" in node:
            walk(node["not"])
        params = node.get("params")
        if isinstance(params, dict) and isinstance(params.get("resultFact"), str):
            names.add(params["resultFact"])

    walk(conditions)
    return names
