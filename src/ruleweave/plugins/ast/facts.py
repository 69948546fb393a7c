"""AST-backed facts: ``ast``, ``functionComplexity``, ``functionCount``, ``codeRhythm``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ruleweave.engine.types import FactDefn
from ruleweave.plugins.ast.complexity import (
    ComplexityThresholds,
    analyze_functions,
    iter_function_nodes,
    summarize,
)
from ruleweave.plugins.ast.parser import generate_ast, has_content
from ruleweave.plugins.ast.rhythm import analyze_rhythm

if TYPE_CHECKING:
    from tree_sitter import Tree

    from ruleweave.engine.almanac import Almanac

logger = logging.getLogger(__name__)


def _empty_complexity(thresholds: ComplexityThresholds) -> dict[str, Any]:
    return summarize([], thresholds)


async def _file_tree(almanac: Almanac) -> tuple[dict[str, Any] | None, Tree | None]:
    """Return ``(fileData, tree)``; the tree comes from the memoized ``ast`` fact."""
    file_data = await almanac.fact_value("fileData")
    if not has_content(file_data):
        return file_data, None
    ast_result = await almanac.fact_value("ast")
    tree = ast_result.get("tree") if isinstance(ast_result, dict) else None
    return file_data, tree


async def ast_fact(params: dict[str, Any], almanac: Almanac) -> dict[str, Any]:
    file_data = await almanac.fact_value("fileData")
    result = generate_ast(file_data).to_dict()
    if params.get("resultFact"):
        almanac.add_runtime_fact(params["resultFact"], result)
    return result


async def function_complexity_fact(params: dict[str, Any], almanac: Almanac) -> dict[str, Any]:
    """Complexity of every function in the current file.

    Parameters (rule ``params``)
    ----------------------------
    thresholds:
        camelCase metric limits; omitted metrics use the defaults.
    minimumComplexityLogged:
        Functions with lower cyclomatic complexity are left out.
    resultFact:
        Name of a runtime fact to publish the result under.
    """
    thresholds = ComplexityThresholds()
    try:
        thresholds = ComplexityThresholds.from_params(params.get("thresholds"))
        file_data, tree = await _file_tree(almanac)
        if tree is None:
            return _empty_complexity(thresholds)

        functions = analyze_functions(
            tree.root_node,
            thresholds,
            int(params.get("minimumComplexityLogged", 0)),
        )
        result = summarize(functions, thresholds)
        logger.debug(
            "%s: %d functions, max complexity %d",
            (file_data or {}).get("filePath"),
            len(functions),
            result["maxComplexity"],
        )
        if params.get("resultFact"):
            almanac.add_runtime_fact(params["resultFact"], result)
        return result
    except Exception:
        logger.exception("Error analyzing function complexity")
        return _empty_complexity(thresholds)


async def function_count_fact(params: dict[str, Any], almanac: Almanac) -> int:
    """Number of function nodes in the current file (0 without a tree)."""
    try:
        _, tree = await _file_tree(almanac)
        if tree is None:
            return 0
        count = sum(1 for _ in iter_function_nodes(tree.root_node))
        if params.get("resultFact"):
            almanac.add_runtime_fact(params["resultFact"], count)
        return count
    except Exception:
        logger.exception("Error counting functions")
        return 0


async def code_rhythm_fact(params: dict[str, Any], almanac: Almanac) -> dict[str, Any]:
    try:
        file_data, tree = await _file_tree(almanac)
        if tree is None:
            logger.debug("No AST available for rhythm analysis")
            return {"metrics": None}

        metrics = analyze_rhythm(tree.root_node).to_dict()
        logger.debug("Code rhythm for %s: %s", (file_data or {}).get("filePath"), metrics)
        if params.get("resultFact"):
            almanac.add_runtime_fact(params["resultFact"], metrics)
        return {"metrics": metrics}
    except Exception:
        logger.exception("Error in code rhythm analysis")
        return {"metrics": None}


AST_FACTS: tuple[FactDefn, ...] = (
    FactDefn(name="ast", fn=ast_fact, description="Parsed syntax tree of the current file", priority=3),
    FactDefn(
        name="functionComplexity",
        fn=function_complexity_fact,
        description="Per-function cyclomatic/cognitive complexity, nesting, parameters and returns",
    ),
    FactDefn(name="functionCount", fn=function_count_fact, description="Number of functions in the file"),
    FactDefn(
        name="codeRhythm",
        fn=code_rhythm_fact,
        description="Flow density, operational symmetry and syntactic discontinuity",
    ),
)
