"""Tests for ruleweave.engine.analyzer — end-to-end runs over a small repository."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
from rich.console import Console

from ruleweave.engine.analyzer import (
    AnalysisReport,
    Analyzer,
    format_json,
    format_porcelain,
    render_report,
)
from ruleweave.engine.types import REPO_GLOBAL_CHECK, FactDefn, OperatorDefn, Plugin, RuleFailure
from ruleweave.infrastructure.repo_config import REPO_CONFIG_FILE
from ruleweave.infrastructure.resolver import ArchetypeConfig, ConfigResolver, ResolutionError

if TYPE_CHECKING:
    from pathlib import Path

    from ruleweave.engine.almanac import Almanac
    from ruleweave.engine.registry import PluginRegistry


def _levels(report: AnalysisReport) -> dict[str, list[tuple[str, str]]]:
    return {path: [(f.rule_name, f.level) for f in items] for path, items in report.failures.items()}


def _fired_on(report: AnalysisReport, rule_name: str) -> list[str]:
    return [path for path, items in report.failures.items() if any(f.rule_name == rule_name for f in items)]


@pytest.fixture()
def analyzer(registry: PluginRegistry, local_config: Path) -> Analyzer:
    return Analyzer(registry, ConfigResolver(local_config_path=local_config))


class TestAnalyze:
    @pytest.mark.asyncio()
    async def test_reports_file_and_repository_failures(self, analyzer: Analyzer, tmp_repo: Path) -> None:
        report = await analyzer.analyze(tmp_repo, "demo")

        assert report.archetype == "demo"
        assert report.file_count == 3
        assert report.rules_evaluated == 2
        assert _levels(report) == {
            "src/index.js": [("no-console", "warning")],
            REPO_GLOBAL_CHECK: [("missing-readme", "fatality")],
        }
        assert report.has_fatalities
        assert report.counts() == {"error": 0, "exempt": 0, "fatality": 1, "warning": 1}

    @pytest.mark.asyncio()
    async def test_failure_details(self, analyzer: Analyzer, tmp_repo: Path) -> None:
        report = await analyzer.analyze(tmp_repo, "demo")
        details = report.failures["src/index.js"][0].details

        assert details["message"] == "console.log found"
        assert details["filePath"] == "src/index.js"
        assert details["fileName"] == "index.js"
        assert details["conditionType"] == "all"
        assert details["conditionDetails"] == {"fact": "repoFileAnalysis", "operator": "fileContains", "value": True}
        assert len(details["allConditions"]) == 1

    @pytest.mark.asyncio()
    async def test_exempted_rule(self, analyzer: Analyzer, tmp_repo: Path, local_config: Path) -> None:
        (local_config / "demo-exemptions.json").write_text(
            json.dumps([{"repoUrl": "org/repo", "rule": "missing-readme", "expirationDate": "2099-01-01"}]),
            encoding="utf-8",
        )
        report = await analyzer.analyze(tmp_repo, "demo", repo_url="https://github.com/org/repo")

        assert _levels(report)[REPO_GLOBAL_CHECK] == [("missing-readme", "exempt")]
        assert not report.has_fatalities

    @pytest.mark.asyncio()
    async def test_repo_config_rules(self, analyzer: Analyzer, tmp_repo: Path) -> None:
        (tmp_repo / REPO_CONFIG_FILE).write_text(
            """\
additionalRules:
  - name: no-console
    conditions:
      all:
        - fact: repoFileAnalysis
          params: {checkPattern: ["import"]}
          operator: fileContains
          value: true
    event:
      type: fatality
      params: {message: imports are forbidden}
  - name: needs-plugin
    conditions:
      all:
        - {fact: unknownFact, operator: fileContains, value: true}
    event: {type: warning}
""",
            encoding="utf-8",
        )
        report = await analyzer.analyze(tmp_repo, "demo")

        assert report.rules_evaluated == 2
        assert _levels(report)["src/index.js"] == [("no-console", "fatality")]

    @pytest.mark.asyncio()
    async def test_plugin_failure_is_isolated(
        self, registry: PluginRegistry, local_config: Path, tmp_repo: Path
    ) -> None:
        async def explode(params: dict[str, Any], almanac: Almanac) -> Any:
            msg = "kaboom"
            raise RuntimeError(msg)

        registry.register(
            Plugin(
                name="broken",
                version="0.1.0",
                facts=(FactDefn(name="explodes", fn=explode),),
                operators=(OperatorDefn(name="isTrue", fn=lambda value, expected: value is expected),),
            )
        )
        (tmp_repo / REPO_CONFIG_FILE).write_text(
            "additionalRules:\n"
            "  - name: broken-rule\n"
            "    conditions: {all: [{fact: explodes, operator: isTrue, value: true}]}\n"
            "    event: {type: fatality}\n",
            encoding="utf-8",
        )
        analyzer = Analyzer(registry, ConfigResolver(local_config_path=local_config))
        report = await analyzer.analyze(tmp_repo, "demo")

        assert report.rules_evaluated == 3
        assert _levels(report)["src/index.js"] == [("no-console", "warning")]
        assert report.diagnostics
        assert report.diagnostics[0].level == "warning"
        assert report.diagnostics[0].details["plugin"] == "broken"

    @pytest.mark.asyncio()
    async def test_unknown_archetype(self, analyzer: Analyzer, tmp_repo: Path) -> None:
        with pytest.raises(ResolutionError):
            await analyzer.analyze(tmp_repo, "nope")


class TestRunnableRules:
    def test_result_facts_and_base_facts_are_known(self, analyzer: Analyzer) -> None:
        rules = [
            {
                "name": "chained",
                "conditions": {
                    "all": [
                        {"fact": "repoFileAnalysis", "params": {"resultFact": "hits"}, "operator": "fileContains", "value": True},
                        {"fact": "hits", "operator": "fileContains", "value": True},
                        {"fact": "fileData", "operator": "regexMatch", "value": "x"},
                    ]
                },
                "event": {"type": "warning"},
            },
            {
                "name": "bad-operator",
                "conditions": {"all": [{"fact": "fileData", "operator": "nope", "value": 1}]},
                "event": {"type": "warning"},
            },
        ]
        assert [r["name"] for r in analyzer.runnable_rules(rules)] == ["chained"]


class TestEvaluationModes:
    @pytest.mark.asyncio()
    async def test_global_rule_fires_once(self, analyzer: Analyzer, tmp_repo: Path) -> None:
        rule = {
            "name": "log-adoption",
            "conditions": {
                "all": [
                    {
                        "fact": "globalFileAnalysis",
                        "params": {"newPatterns": [r"console\.log"], "legacyPatterns": ["import "]},
                        "operator": "globalPatternRatio",
                        "value": {"value": 0.4, "comparison": "gte"},
                    }
                ]
            },
            "event": {"type": "warning"},
        }
        (tmp_repo / REPO_CONFIG_FILE).write_text(json.dumps({"additionalRules": [rule]}), encoding="utf-8")

        report = await analyzer.analyze(tmp_repo, "demo")

        assert _fired_on(report, "log-adoption") == [REPO_GLOBAL_CHECK]

    @pytest.mark.asyncio()
    async def test_file_name_guards(self, analyzer: Analyzer, tmp_repo: Path) -> None:
        rules = [
            {
                "name": "repo-only",
                "conditions": {
                    "all": [
                        {"fact": "fileData", "path": "$.fileName", "operator": "equal", "value": REPO_GLOBAL_CHECK},
                        {
                            "fact": "missingRequiredFiles",
                            "params": {"requiredFiles": ["LICENSE"]},
                            "operator": "missingRequiredFiles",
                            "value": True,
                        },
                    ]
                },
                "event": {"type": "warning"},
            },
            {
                "name": "files-only",
                "conditions": {
                    "all": [
                        {"fact": "fileData", "path": "$.fileName", "operator": "notEqual", "value": REPO_GLOBAL_CHECK},
                        {"fact": "fileData", "path": "$.fileName", "operator": "in", "value": ["Button.jsx"]},
                    ]
                },
                "event": {"type": "warning"},
            },
        ]
        (tmp_repo / REPO_CONFIG_FILE).write_text(json.dumps({"additionalRules": rules}), encoding="utf-8")

        report = await analyzer.analyze(tmp_repo, "demo")

        assert report.rules_evaluated == 4
        levels = _levels(report)
        assert ("repo-only", "warning") in levels[REPO_GLOBAL_CHECK]
        assert levels["src/components/Button.jsx"] == [("files-only", "warning")]
        assert _fired_on(report, "repo-only") == [REPO_GLOBAL_CHECK]


class TestArchetypeSelection:
    @pytest.fixture()
    def narrow(self) -> ArchetypeConfig:
        return ArchetypeConfig(name="narrow", facts=("repoFileAnalysis",), operators=("fileContains",))

    def test_listed_facts_and_operators_only(self, analyzer: Analyzer, narrow: ArchetypeConfig) -> None:
        rules = [
            {
                "name": "listed",
                "conditions": {
                    "all": [
                        {"fact": "fileData", "path": "$.fileName", "operator": "notEqual", "value": REPO_GLOBAL_CHECK},
                        {
                            "fact": "repoFileAnalysis",
                            "params": {"checkPattern": "x"},
                            "operator": "fileContains",
                            "value": True,
                        },
                    ]
                },
                "event": {"type": "warning"},
            },
            {
                "name": "unlisted-fact",
                "conditions": {
                    "all": [{"fact": "missingRequiredFiles", "operator": "missingRequiredFiles", "value": True}]
                },
                "event": {"type": "warning"},
            },
            {
                "name": "unlisted-operator",
                "conditions": {"all": [{"fact": "fileData", "operator": "regexMatch", "value": "x"}]},
                "event": {"type": "warning"},
            },
        ]
        assert [r["name"] for r in analyzer.runnable_rules(rules, narrow)] == ["listed"]
        assert len(analyzer.runnable_rules(rules, ArchetypeConfig(name="open"))) == 3

    @pytest.mark.asyncio()
    async def test_unlisted_globals_not_precomputed(
        self, analyzer: Analyzer, narrow: ArchetypeConfig, tmp_repo: Path
    ) -> None:
        assert await analyzer._precompute_globals({}, tmp_repo, narrow) == {}
        everything = await analyzer._precompute_globals({}, tmp_repo, ArchetypeConfig(name="open"))
        assert "repoDependencyVersions" in everything

    @pytest.mark.asyncio()
    async def test_archetype_file_lists_apply(
        self, registry: PluginRegistry, local_config: Path, tmp_repo: Path
    ) -> None:
        demo = json.loads((local_config / "demo.json").read_text(encoding="utf-8"))
        demo.update(name="narrow", facts=["repoFileAnalysis"], operators=["fileContains"])
        (local_config / "narrow.json").write_text(json.dumps(demo), encoding="utf-8")

        report = await Analyzer(registry, ConfigResolver(local_config_path=local_config)).analyze(tmp_repo, "narrow")

        assert report.rules_evaluated == 1
        assert _levels(report) == {"src/index.js": [("no-console", "warning")]}


class TestFormatters:
    @pytest.fixture()
    def report(self) -> AnalysisReport:
        return AnalysisReport(
            archetype="demo",
            repo_path="/repo",
            file_count=2,
            rules_evaluated=1,
            failures={"a.js": [RuleFailure("no-console", "warning", {"message": "line one\nline two"})]},
        )

    def test_porcelain(self, report: AnalysisReport) -> None:
        assert format_porcelain(report) == "warning:no-console:a.js:line one line two"
        assert format_porcelain(AnalysisReport(archetype="demo", repo_path="/repo")) == ""

    def test_json(self, report: AnalysisReport) -> None:
        data = json.loads(format_json(report))
        assert data["fileCount"] == 2
        assert data["failures"] == [
            {
                "filePath": "a.js",
                "errors": [
                    {"ruleFailure": "no-console", "level": "warning", "details": {"message": "line one\nline two"}}
                ],
            }
        ]

    def test_render(self, report: AnalysisReport) -> None:
        console = Console(record=True, width=120)
        render_report(report, console)
        text = console.export_text()
        assert "no-console" in text
        assert "warning: 1" in text

    def test_render_clean(self) -> None:
        console = Console(record=True, width=120)
        render_report(AnalysisReport(archetype="demo", repo_path="/repo"), console)
        assert "No issues found" in console.export_text()
