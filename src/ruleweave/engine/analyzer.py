"""Analyzer orchestrator: resolve an archetype, collect files, evaluate rules, format results."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ruleweave.engine.almanac import Almanac
from ruleweave.engine.conditions import (
    ConditionError,
    evaluate_conditions,
    referenced_names,
    result_fact_names,
)
from ruleweave.engine.registry import NotRegisteredError
from ruleweave.engine.types import VALID_FAILURE_LEVELS, FileRecord, PluginDiagnostic, RuleFailure
from ruleweave.infrastructure.collector import PathFilters, collect_repo_files
from ruleweave.infrastructure.exemptions import find_exemption
from ruleweave.infrastructure.repo_config import load_repo_config
from ruleweave.infrastructure.resolver import is_valid_rule
from ruleweave.plugins.engine.operators import ENGINE_OPERATOR_NAMES

if TYPE_CHECKING:
    from rich.console import Console

    from ruleweave.engine.registry import PluginRegistry
    from ruleweave.infrastructure.exemptions import Exemption
    from ruleweave.infrastructure.repo_config import RepoConfig
    from ruleweave.infrastructure.resolver import ArchetypeConfig, ConfigResolver

logger = logging.getLogger(__name__)

# Facts the analyzer supplies itself; rules may reference them without a plugin.
BASE_FACT_NAMES: frozenset[str] = frozenset(
    {
        "fileData",
        "globalFileMetadata",
        "dependencyData",
        "standardStructure",
        "repoConfig",
        "repoPath",
        "archetypeConfig",
    }
)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class AnalysisReport:
    """Result of one analysis run."""

    archetype: str
    repo_path: str
    file_count: int = 0
    rules_evaluated: int = 0
    failures: dict[str, list[RuleFailure]] = field(default_factory=dict)
    diagnostics: list[PluginDiagnostic] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def counts(self) -> dict[str, int]:
        """Number of failures per level (every level present, zero included)."""
        totals = dict.fromkeys(sorted(VALID_FAILURE_LEVELS), 0)
        for items in self.failures.values():
            for failure in items:
                totals[failure.level] = totals.get(failure.level, 0) + 1
        return totals

    @property
    def has_fatalities(self) -> bool:
        return self.counts().get("fatality", 0) > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "archetype": self.archetype,
            "repoPath": self.repo_path,
            "fileCount": self.file_count,
            "rulesEvaluated": self.rules_evaluated,
            "counts": self.counts(),
            "failures": [
                {"filePath": path, "errors": [f.to_dict() for f in items]}
                for path, items in self.failures.items()
            ],
            "diagnostics": [
                {"message": d.message, "level": d.level, "details": d.details}
                for d in self.diagnostics
            ],
            "elapsedMs": self.elapsed_ms,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _first_leaf(conditions: Any) -> dict[str, Any] | None:
    """First leaf condition carrying both an operator and a value."""
    if not isinstance(conditions, dict):
        return None
    if "operator" in conditions and "value" in conditions:
        return conditions
    for key in ("all", "any"):
        for child in conditions.get(key) or []:
            leaf = _first_leaf(child)
            if leaf is not None:
                return leaf
    if "not" in conditions:
        return _first_leaf(conditions["not"])
    return None


def _condition_type(conditions: Any) -> str:
    if isinstance(conditions, dict):
        for key in ("all", "any", "not"):
            if key in conditions:
                return key
    return "unknown"


def _failure_level(event_type: Any) -> str:
    if event_type in {"warning", "fatality"}:
        return str(event_type)
    logger.debug("Unknown event type %r treated as warning", event_type)
    return "warning"


async def _event_details(rule: dict[str, Any], record: FileRecord, almanac: Almanac) -> dict[str, Any]:
    event = rule.get("event") or {}
    params = dict(event.get("params") or {})
    conditions = rule.get("conditions") or {}

    details = params.get("details")
    if isinstance(details, dict) and set(details) == {"fact"}:
        params["details"] = await almanac.fact_value(details["fact"])

    leaf = _first_leaf(conditions)
    return {
        **params,
        "message": params.get("message") or rule.get("name"),
        "conditionDetails": (
            {"fact": leaf.get("fact"), "operator": leaf.get("operator"), "value": leaf.get("value")}
            if leaf is not None
            else None
        ),
        "allConditions": conditions.get("all") or conditions.get("any") or [],
        "conditionType": _condition_type(conditions),
        "ruleDescription": rule.get("description") or params.get("description") or "",
        "recommendations": rule.get("recommendations") or params.get("recommendations") or [],
        "filePath": record.file_path,
        "fileName": record.file_name,
    }


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class Analyzer:
    """Evaluates an archetype's rules against every file of a repository.

    Records are evaluated one at a time, each with a fresh
    :class:`Almanac`.  The whole-repository sentinel is evaluated last.
    """

    def __init__(self, registry: PluginRegistry, resolver: ConfigResolver) -> None:
        self.registry = registry
        self.resolver = resolver

    # -- rule selection ------------------------------------------------------

    def runnable_rules(
        self,
        rules: list[dict[str, Any]],
        archetype_config: ArchetypeConfig | None = None,
    ) -> list[dict[str, Any]]:
        """Rules whose facts and operators can all be resolved.

        A non-empty ``facts`` or ``operators`` list on *archetype_config*
        further limits which registered facts and operators rules may use.
        The engine operators stay available to every archetype.
        """
        runnable: list[dict[str, Any]] = []
        for rule in rules:
            conditions = rule.get("conditions")
            facts, operators = referenced_names(conditions)
            known = BASE_FACT_NAMES | result_fact_names(conditions)
            missing_facts = sorted(
                f for f in facts if f not in known and not self._fact_enabled(f, archetype_config)
            )
            missing_ops = sorted(o for o in operators if not self._operator_enabled(o, archetype_config))
            if missing_facts or missing_ops:
                logger.warning(
                    "Skipping rule '%s': unavailable facts %s, operators %s",
                    rule.get("name"),
                    missing_facts,
                    missing_ops,
                )
                continue
            runnable.append(rule)
        return runnable

    def _fact_enabled(self, name: str, archetype_config: ArchetypeConfig | None) -> bool:
        if not self.registry.has_fact(name):
            return False
        return archetype_config is None or not archetype_config.facts or name in archetype_config.facts

    def _operator_enabled(self, name: str, archetype_config: ArchetypeConfig | None) -> bool:
        if not self.registry.has_operator(name):
            return False
        if archetype_config is None or not archetype_config.operators or name in ENGINE_OPERATOR_NAMES:
            return True
        return name in archetype_config.operators

    def _merge_repo_rules(self, rules: list[dict[str, Any]], repo_config: RepoConfig) -> list[dict[str, Any]]:
        merged = list(rules)
        names = {r.get("name") for r in rules}
        for rule in repo_config.additional_rules:
            if not is_valid_rule(rule):
                logger.error("Ignoring invalid additional rule in repository config: %s", rule.get("name"))
                continue
            if rule["name"] in names:
                logger.warning("Additional rule '%s' replaces the archetype rule", rule["name"])
                merged = [r for r in merged if r.get("name") != rule["name"]]
            merged.append(dict(rule))
            names.add(rule["name"])
        return merged

    # -- global facts ----------------------------------------------------------

    async def _precompute_globals(
        self,
        shared: dict[str, Any],
        repo_path: Path,
        archetype_config: ArchetypeConfig,
    ) -> dict[str, Any]:
        """Run every enabled ``global`` fact once, highest priority first."""
        params = {"repoPath": str(repo_path), "archetypeConfig": archetype_config.to_dict()}
        facts = [
            self.registry.get_fact(name)
            for name in self.registry.fact_names()
            if self._fact_enabled(name, archetype_config)
        ]
        values: dict[str, Any] = {}
        for fact in sorted((f for f in facts if f.kind == "global"), key=lambda f: -f.priority):
            almanac = Almanac(self.registry, {**shared, **values})
            values[fact.name] = await self.registry.invoke_fact(fact.name, params, almanac)
            logger.debug("Precomputed global fact '%s'", fact.name)
        return values

    # -- evaluation ------------------------------------------------------------

    async def _evaluate_record(
        self,
        record: FileRecord,
        rules: list[dict[str, Any]],
        shared: dict[str, Any],
        repo_url: str | None,
        exemptions: list[Exemption],
    ) -> list[RuleFailure]:
        almanac = Almanac(self.registry, {**shared, "fileData": record.to_dict()})
        failures: list[RuleFailure] = []
        seen: set[tuple[str, str, str]] = set()

        for rule in rules:
            name = str(rule.get("name"))
            try:
                triggered = await evaluate_conditions(rule["conditions"], almanac)
                if not triggered:
                    continue
                details = await _event_details(rule, record, almanac)
                level = _failure_level((rule.get("event") or {}).get("type"))
            except (NotRegisteredError, ConditionError) as exc:
                logger.error("Rule '%s' failed on %s: %s", name, record.file_path, exc)
                failures.append(
                    RuleFailure(
                        rule_name=name,
                        level="error",
                        details={
                            "message": str(exc),
                            "filePath": record.file_path,
                            "fileName": record.file_name,
                        },
                    )
                )
                continue
            except Exception as exc:
                logger.exception("Unexpected error evaluating rule '%s' on %s", name, record.file_path)
                failures.append(
                    RuleFailure(
                        rule_name=name,
                        level="error",
                        details={
                            "message": f"Unexpected error: {exc}",
                            "filePath": record.file_path,
                            "fileName": record.file_name,
                        },
                    )
                )
                continue

            key = (name, level, str(details.get("message")))
            if key in seen:
                continue
            seen.add(key)

            if find_exemption(repo_url, name, exemptions) is not None:
                level = "exempt"
            failures.append(RuleFailure(rule_name=name, level=level, details=details))

        return failures

    async def analyze(
        self,
        repo_path: str | Path,
        archetype: str,
        repo_url: str | None = None,
    ) -> AnalysisReport:
        """Run a full analysis of *repo_path* against *archetype*.

        Raises
        ------
        ResolutionError
            If the archetype or its rules cannot be resolved.
        """
        start = time.monotonic()
        root = Path(repo_path).resolve()
        self.registry.clear_diagnostics()

        archetype_config = self.resolver.get_archetype(archetype)
        repo_config = load_repo_config(root)
        rules = self._merge_repo_rules(self.resolver.load_rules(archetype_config), repo_config)
        rules = self.runnable_rules(rules, archetype_config)
        exemptions = self.resolver.load_exemptions(archetype)

        records = collect_repo_files(root, PathFilters.from_config(archetype_config.config))
        file_records = [r for r in records if not r.is_global]
        config = archetype_config.config

        shared: dict[str, Any] = {
            "globalFileMetadata": [r.to_dict() for r in file_records],
            "standardStructure": config.get("standardStructure") or {},
            "repoConfig": repo_config.to_dict(),
            "repoPath": str(root),
            "archetypeConfig": archetype_config.to_dict(),
        }
        shared.update(await self._precompute_globals(shared, root, archetype_config))
        installed = shared.get("repoDependencyVersions") or []
        shared["dependencyData"] = {
            "installedDependencyVersions": {
                d["dep"]: d["ver"] for d in installed if isinstance(d, dict) and "dep" in d
            },
            "minimumDependencyVersions": dict(config.get("minimumDependencyVersions") or {}),
        }

        report = AnalysisReport(
            archetype=archetype_config.name,
            repo_path=str(root),
            file_count=len(file_records),
            rules_evaluated=len(rules),
        )
        for record in records:
            failures = await self._evaluate_record(record, rules, shared, repo_url, exemptions)
            if failures:
                report.failures[record.file_path] = failures

        report.diagnostics = list(self.registry.diagnostics)
        report.elapsed_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Analyzed %d files with %d rules in %.0fms: %s",
            report.file_count,
            report.rules_evaluated,
            report.elapsed_ms,
            report.counts(),
        )
        return report


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_json(report: AnalysisReport) -> str:
    return json.dumps(report.to_dict(), indent=2, default=str)


def format_porcelain(report: AnalysisReport) -> str:
    """One line per failure: ``level:rule:file_path:message``.

    Returns an empty string when nothing was found.
    """
    lines: list[str] = []
    for path, items in report.failures.items():
        for failure in items:
            message = str(failure.details.get("message", "")).replace("\n", " ")
            lines.append(f"{failure.level}:{failure.rule_name}:{path}:{message}")
    return "\n".join(lines)


_LEVEL_STYLES = {"fatality": "bold red", "warning": "yellow", "error": "magenta", "exempt": "dim"}


def render_report(report: AnalysisReport, console: Console) -> None:
    """Print a human-readable report table."""
    from rich.table import Table

    console.print(
        f"Archetype [bold]{report.archetype}[/]: {report.file_count} files, "
        f"{report.rules_evaluated} rules ({report.elapsed_ms / 1000:.1f}s)"
    )
    if not report.failures:
        console.print("[green]✓ No issues found[/]")
    else:
        table = Table(show_header=True, box=None, padding=(0, 1))
        table.add_column("level")
        table.add_column("rule", style="cyan")
        table.add_column("file")
        table.add_column("message")
        for path, items in report.failures.items():
            for failure in items:
                style = _LEVEL_STYLES.get(failure.level, "")
                table.add_row(
                    f"[{style}]{failure.level}[/]" if style else failure.level,
                    failure.rule_name,
                    path,
                    str(failure.details.get("message", "")),
                )
        console.print(table)

    counts = ", ".join(f"{level}: {n}" for level, n in report.counts().items() if n)
    if counts:
        console.print(counts)
    for diagnostic in report.diagnostics:
        console.print(f"[yellow]⚠ {diagnostic.message}[/]")
