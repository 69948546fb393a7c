"""AST plugin: tree-sitter parsing, function complexity and code rhythm."""

from __future__ import annotations

from ruleweave.engine.types import Plugin, PluginDiagnostic
from ruleweave.plugins.ast.facts import AST_FACTS
from ruleweave.plugins.ast.operators import AST_OPERATORS


def _on_error(exc: BaseException) -> PluginDiagnostic:
    return PluginDiagnostic(
        message=f"AST analysis failed: {exc}",
        details={"error_type": type(exc).__name__},
    )


def ast_plugin() -> Plugin:
    return Plugin(
        name="ruleweave-ast",
        version="1.0.0",
        facts=AST_FACTS,
        operators=AST_OPERATORS,
        on_error=_on_error,
        description="Syntax-tree facts for JavaScript and TypeScript",
    )


__all__ = ["ast_plugin"]
