"""Code-rhythm heuristics: flow density, operational symmetry, syntactic discontinuity."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tree_sitter import Node as TSNode

NODE_WEIGHTS: dict[str, int] = {
    "function_declaration": 3,
    "method_definition": 3,
    "arrow_function": 3,
    "if_statement": 2,
    "for_statement": 2,
    "for_in_statement": 2,
    "while_statement": 2,
    "do_statement": 2,
    "switch_statement": 2,
    "try_statement": 2,
    "return_statement": 1,
    "variable_declaration": 1,
    "lexical_declaration": 1,
}


@dataclass(frozen=True)
class RhythmMetrics:
    flow_density: float
    operational_symmetry: float
    syntactic_discontinuity: float
    node_count: int

    def to_dict(self) -> dict[str, float | int]:
        return {
            "flowDensity": self.flow_density,
            "operationalSymmetry": self.operational_symmetry,
            "syntacticDiscontinuity": self.syntactic_discontinuity,
            "nodeCount": self.node_count,
        }


def node_weight(node_type: str) -> int:
    return NODE_WEIGHTS.get(node_type, 0)


def _preorder(root: TSNode) -> tuple[list[TSNode], list[int]]:
    """Nodes in pre-order plus each node's parent index (-1 for the root)."""
    nodes: list[TSNode] = []
    parents: list[int] = []
    stack: list[tuple[TSNode, int]] = [(root, -1)]
    while stack:
        node, parent = stack.pop()
        index = len(nodes)
        nodes.append(node)
        parents.append(parent)
        stack.extend((child, index) for child in reversed(node.children))
    return nodes, parents


def flow_density(nodes: list[TSNode], parents: list[int]) -> float:
    """Mean of ``impact(n) = weight(n) + 0.5 * sum(impact(child))``."""
    if not nodes:
        return 0.0
    impacts = [float(node_weight(n.type)) for n in nodes]
    child_sums = [0.0] * len(nodes)
    # Children always follow their parent in pre-order.
    for index in range(len(nodes) - 1, -1, -1):
        impacts[index] += 0.5 * child_sums[index]
        parent = parents[index]
        if parent >= 0:
            child_sums[parent] += impacts[index]
    return sum(impacts) / len(impacts)


def operational_symmetry(nodes: list[TSNode]) -> float:
    """``1 / (1 + population variance of per-type node counts)``."""
    counts = list(Counter(n.type for n in nodes).values())
    if not counts:
        return 1.0
    mean = sum(counts) / len(counts)
    variance = sum((c - mean) ** 2 for c in counts) / len(counts)
    return 1.0 / (1.0 + variance)


def syntactic_discontinuity(nodes: list[TSNode]) -> float:
    """Weighted irregularity of the line spacing between same-type nodes.

    The first node of a type has interval 0 against a previous interval of 0.
    """
    last_row: dict[str, int] = {}
    last_interval: dict[str, int] = {}
    total = 0.0
    for node in nodes:
        kind = node.type
        row = node.start_point[0]
        interval = row - last_row[kind] if kind in last_row else 0
        total += node_weight(kind) * abs(interval - last_interval.get(kind, 0))
        last_row[kind] = row
        last_interval[kind] = interval
    return total


def analyze_rhythm(root: TSNode) -> RhythmMetrics:
    """Score the whole tree under *root*."""
    nodes, parents = _preorder(root)
    return RhythmMetrics(
        flow_density=flow_density(nodes, parents),
        operational_symmetry=operational_symmetry(nodes),
        syntactic_discontinuity=syntactic_discontinuity(nodes),
        node_count=len(nodes),
    )
