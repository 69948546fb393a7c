"""Tests for ruleweave.plugins.ast facts and operators."""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest

from ruleweave.engine.types import global_record
from ruleweave.plugins.ast.operators import ast_complexity, code_rhythm_threshold, function_count


def _javascript_available() -> bool:
    try:
        import tree_sitter_javascript  # noqa: F401

        return True
    except ImportError:
        return False


def _result(**metrics: int) -> dict[str, Any]:
    return {"complexities": [{"name": "f", "metrics": metrics}]}


class TestAstComplexityOperator:
    def test_meets_threshold(self) -> None:
        assert ast_complexity(_result(cyclomaticComplexity=10), {"cyclomaticComplexity": 10})

    def test_below_threshold(self) -> None:
        assert not ast_complexity(_result(cyclomaticComplexity=9), {"cyclomaticComplexity": 10})

    def test_only_named_metrics_compared(self) -> None:
        assert not ast_complexity(
            _result(cyclomaticComplexity=50, nestingDepth=1), {"nestingDepth": 3}
        )

    def test_malformed_input(self) -> None:
        assert not ast_complexity(None, {"cyclomaticComplexity": 1})
        assert not ast_complexity({"complexities": "nope"}, {"cyclomaticComplexity": 1})
        assert not ast_complexity(_result(cyclomaticComplexity=5), 3)

    def test_true_ors_exceedance_flags(self) -> None:
        flagged = {
            "complexities": [
                {"name": "f", "exceedsThresholds": {"cyclomaticComplexity": False, "nestingDepth": False}},
                {"name": "g", "exceedsThresholds": {"cyclomaticComplexity": True, "nestingDepth": False}},
            ]
        }
        assert ast_complexity(flagged, True)
        assert not ast_complexity(flagged, False)

    def test_true_without_exceedance(self) -> None:
        quiet = {"complexities": [{"name": "f", "exceedsThresholds": {"cyclomaticComplexity": False}}]}
        assert not ast_complexity(quiet, True)
        assert not ast_complexity({"complexities": [{"name": "f"}]}, True)


class TestFunctionCountOperator:
    def test_at_or_above(self) -> None:
        assert function_count(5, 5)
        assert not function_count(4, 5)

    def test_rejects_booleans(self) -> None:
        assert not function_count(True, 1)
        assert not function_count(3, None)


class TestCodeRhythmOperator:
    def test_symmetry_fails_when_low(self) -> None:
        assert code_rhythm_threshold({"metrics": {"operationalSymmetry": 0.2}}, {"operationalSymmetry": 0.5})
        assert not code_rhythm_threshold(
            {"metrics": {"operationalSymmetry": 0.9}}, {"operationalSymmetry": 0.5}
        )

    def test_density_fails_when_high(self) -> None:
        assert code_rhythm_threshold({"flowDensity": 3.0}, {"flowDensity": 2.0})
        assert not code_rhythm_threshold({"flowDensity": 1.0}, {"flowDensity": 2.0})

    def test_missing_metrics(self) -> None:
        assert not code_rhythm_threshold({"metrics": None}, {"flowDensity": 1.0})


class TestFactsWithoutContent:
    @pytest.mark.asyncio()
    async def test_sentinel_yields_empty_results(self, make_almanac: Any) -> None:
        almanac = make_almanac(fileData=global_record().to_dict())
        complexity = await almanac.fact_value("functionComplexity", {})
        assert complexity["complexities"] == []
        assert await almanac.fact_value("functionCount") == 0
        assert await almanac.fact_value("codeRhythm") == {"metrics": None}

    @pytest.mark.asyncio()
    @pytest.mark.parametrize(
        "file_data",
        [
            global_record().to_dict(),
            {"fileName": "a.js", "filePath": "a.js", "fileContent": ""},
            {"fileName": "a.js", "filePath": "a.js", "fileContent": "  \n\t\n"},
        ],
        ids=["sentinel", "empty", "whitespace"],
    )
    async def test_parser_not_invoked(self, make_almanac: Any, file_data: dict[str, Any]) -> None:
        almanac = make_almanac(fileData=file_data)
        with patch("ruleweave.plugins.ast.parser.Parser") as parser_cls:
            ast_result = await almanac.fact_value("ast")
            complexity = await almanac.fact_value("functionComplexity", {})
            count = await almanac.fact_value("functionCount")
            rhythm = await almanac.fact_value("codeRhythm")

        parser_cls.assert_not_called()
        assert ast_result["tree"] is None
        assert complexity["complexities"] == []
        assert count == 0
        assert rhythm == {"metrics": None}


@pytest.mark.skipif(not _javascript_available(), reason="tree-sitter-javascript not installed")
class TestFactsWithContent:
    @pytest.mark.asyncio()
    async def test_complexity_and_result_fact(self, make_almanac: Any) -> None:
        source = "function f(a) {\n  if (a) { return 1; }\n  return 0;\n}\nconst g = () => 1;\n"
        almanac = make_almanac(fileData={"fileName": "a.js", "filePath": "a.js", "fileContent": source})

        result = await almanac.fact_value(
            "functionComplexity",
            {"thresholds": {"cyclomaticComplexity": 2}, "resultFact": "fnComplexity"},
        )

        assert result["maxComplexity"] == 2
        assert result["thresholds"]["cyclomaticComplexity"] == 2
        assert almanac.runtime_fact("fnComplexity") == result
        assert await almanac.fact_value("functionCount") == 2

    @pytest.mark.asyncio()
    async def test_rhythm_metrics(self, make_almanac: Any) -> None:
        almanac = make_almanac(
            fileData={"fileName": "a.js", "filePath": "a.js", "fileContent": "let a = 1;\nlet b = 2;\n"}
        )
        result = await almanac.fact_value("codeRhythm")
        assert set(result["metrics"]) == {
            "flowDensity",
            "operationalSymmetry",
            "syntacticDiscontinuity",
            "nodeCount",
        }
