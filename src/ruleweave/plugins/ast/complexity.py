"""Per-function complexity metrics computed over a tree-sitter syntax tree.

Scoring walks each function's subtree in pre-order:

* cyclomatic complexity starts at 1; ``if``/``case``/``try``/``catch``/
  ``throw`` add 1, loops add 2, every ``&&``/``||`` token adds 0.5, and the
  total is rounded up;
* cognitive complexity adds ``depth + 1`` for ``if``, ``case`` and
  ``catch``, ``depth + 2`` for loops, and 1 for ``try`` and each logical
  operator.  ``depth`` counts enclosing control structures, not tree levels;
* nesting depth is the deepest control-structure level reached.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tree_sitter import Node as TSNode

FUNCTION_TYPES: frozenset[str] = frozenset(
    {"function_declaration", "function_expression", "arrow_function", "function"}
)
BRANCH_TYPES: frozenset[str] = frozenset({"if_statement", "switch_case"})
LOOP_TYPES: frozenset[str] = frozenset({"for_statement", "while_statement", "do_statement"})
LOGICAL_OPERATORS: frozenset[str] = frozenset({"&&", "||"})
# Entering one of these raises the control-structure depth for its children.
NESTING_TYPES: frozenset[str] = BRANCH_TYPES | LOOP_TYPES | {"try_statement"}


@dataclass(frozen=True)
class ComplexityThresholds:
    cyclomatic_complexity: int = 10
    cognitive_complexity: int = 10
    nesting_depth: int = 5
    parameter_count: int = 5
    return_count: int = 3

    @classmethod
    def from_params(cls, data: dict[str, Any] | None) -> ComplexityThresholds:
        """Build from camelCase rule parameters; unknown keys are ignored."""
        if not data:
            return cls()
        defaults = cls()
        return cls(
            cyclomatic_complexity=int(data.get("cyclomaticComplexity", defaults.cyclomatic_complexity)),
            cognitive_complexity=int(data.get("cognitiveComplexity", defaults.cognitive_complexity)),
            nesting_depth=int(data.get("nestingDepth", defaults.nesting_depth)),
            parameter_count=int(data.get("parameterCount", defaults.parameter_count)),
            return_count=int(data.get("returnCount", defaults.return_count)),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "cyclomaticComplexity": self.cyclomatic_complexity,
            "cognitiveComplexity": self.cognitive_complexity,
            "nestingDepth": self.nesting_depth,
            "parameterCount": self.parameter_count,
            "returnCount": self.return_count,
        }


@dataclass(frozen=True)
class ComplexityMetrics:
    cyclomatic_complexity: int
    cognitive_complexity: int
    nesting_depth: int
    parameter_count: int
    return_count: int

    def to_dict(self) -> dict[str, int]:
        return {
            "cyclomaticComplexity": self.cyclomatic_complexity,
            "cognitiveComplexity": self.cognitive_complexity,
            "nestingDepth": self.nesting_depth,
            "parameterCount": self.parameter_count,
            "returnCount": self.return_count,
        }


@dataclass(frozen=True)
class FunctionComplexity:
    name: str
    node_type: str
    start_line: int
    end_line: int
    metrics: ComplexityMetrics
    exceeds_thresholds: dict[str, bool] = field(default_factory=dict)

    @property
    def exceeds_any(self) -> bool:
        return any(self.exceeds_thresholds.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.node_type,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "metrics": self.metrics.to_dict(),
            "exceedsThresholds": dict(self.exceeds_thresholds),
        }


@dataclass
class _Score:
    cyclomatic: float = 1.0
    cognitive: int = 0
    max_depth: int = 0
    returns: int = 0


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def iter_function_nodes(root: TSNode) -> Iterator[TSNode]:
    """Yield every function node in pre-order, nested functions included."""
    stack = [root]
    while stack:
        node = stack.pop()
        # The `function` keyword token shares its type with the legacy node name.
        if node.is_named and node.type in FUNCTION_TYPES:
            yield node
        stack.extend(reversed(node.children))


def _score_node(node: TSNode, depth: int, score: _Score) -> None:
    kind = node.type
    if kind in BRANCH_TYPES:
        score.cyclomatic += 1
        score.cognitive += depth + 1
    elif kind in LOOP_TYPES:
        score.cyclomatic += 2
        score.cognitive += depth + 2
    elif kind == "catch_clause":
        score.cyclomatic += 1
        score.cognitive += depth + 1
    elif kind == "try_statement":
        score.cyclomatic += 1
        score.cognitive += 1
    elif kind == "throw_statement":
        score.cyclomatic += 1
    elif kind in LOGICAL_OPERATORS:
        score.cyclomatic += 0.5
        score.cognitive += 1
    elif kind == "return_statement":
        score.returns += 1

    child_depth = depth + 1 if kind in NESTING_TYPES else depth
    score.max_depth = max(score.max_depth, child_depth)
    for child in node.children:
        _score_node(child, child_depth, score)


def count_parameters(function_node: TSNode) -> int:
    params = function_node.child_by_field_name("parameters")
    if params is not None:
        return int(params.named_child_count)
    # Arrow functions with a single bare identifier: `x => x + 1`.
    return 1 if function_node.child_by_field_name("parameter") is not None else 0


def function_name(function_node: TSNode) -> str:
    """Declared name, or the binding it is assigned to, or ``"anonymous"``."""
    name_node = function_node.child_by_field_name("name")
    if name_node is None:
        parent = function_node.parent
        if parent is not None and parent.type in {"variable_declarator", "pair", "assignment_expression"}:
            name_node = (
                parent.child_by_field_name("name")
                or parent.child_by_field_name("key")
                or parent.child_by_field_name("left")
            )
    if name_node is not None and name_node.text:
        return bytes(name_node.text).decode("utf-8", errors="replace")
    return "anonymous"


def compute_metrics(function_node: TSNode) -> ComplexityMetrics:
    """Score one function node (its whole subtree, nested functions included)."""
    score = _Score()
    for child in function_node.children:
        _score_node(child, 0, score)
    return ComplexityMetrics(
        cyclomatic_complexity=math.ceil(score.cyclomatic),
        cognitive_complexity=score.cognitive,
        nesting_depth=score.max_depth,
        parameter_count=count_parameters(function_node),
        return_count=score.returns,
    )


def exceedances(metrics: ComplexityMetrics, thresholds: ComplexityThresholds) -> dict[str, bool]:
    """Per-metric ``value >= threshold`` flags, keyed by camelCase metric name."""
    values = metrics.to_dict()
    limits = thresholds.to_dict()
    return {name: values[name] >= limits[name] for name in limits}


def analyze_functions(
    root: TSNode,
    thresholds: ComplexityThresholds | None = None,
    minimum_complexity_logged: int = 0,
) -> list[FunctionComplexity]:
    """Score every function under *root* and keep those at or above the logging floor."""
    limits = thresholds or ComplexityThresholds()
    results: list[FunctionComplexity] = []
    for node in iter_function_nodes(root):
        metrics = compute_metrics(node)
        if metrics.cyclomatic_complexity < minimum_complexity_logged:
            continue
        results.append(
            FunctionComplexity(
                name=function_name(node),
                node_type=node.type,
                start_line=node.start_point[0] + 1,
                end_line=node.end_point[0] + 1,
                metrics=metrics,
                exceeds_thresholds=exceedances(metrics, limits),
            )
        )
    return results


def summarize(functions: list[FunctionComplexity], thresholds: ComplexityThresholds) -> dict[str, Any]:
    """Rule-boundary result: per-function entries plus maxima of every metric."""

    def peak(attr: str) -> int:
        return max((getattr(f.metrics, attr) for f in functions), default=0)

    return {
        "complexities": [f.to_dict() for f in functions],
        "maxComplexity": peak("cyclomatic_complexity"),
        "maxCognitiveComplexity": peak("cognitive_complexity"),
        "maxNestingDepth": peak("nesting_depth"),
        "maxParameterCount": peak("parameter_count"),
        "maxReturnCount": peak("return_count"),
        "thresholds": thresholds.to_dict(),
    }

