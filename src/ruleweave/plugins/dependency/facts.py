"""Dependency facts: installed versions (precomputed) and the outdated-version analysis."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ruleweave.engine.types import REPO_GLOBAL_CHECK, FactDefn
from ruleweave.plugins.dependency.collector import (
    VersionData,
    collect_local_dependencies,
    find_properties_in_tree,
)
from ruleweave.plugins.dependency.semver import is_version, version_meets_requirement

if TYPE_CHECKING:
    from ruleweave.engine.almanac import Almanac

logger = logging.getLogger(__name__)


def minimum_dependency_versions(archetype_config: Any) -> dict[str, str]:
    """``config.minimumDependencyVersions`` of an archetype dict."""
    config = archetype_config.get("config") if isinstance(archetype_config, dict) else None
    minimums = config.get("minimumDependencyVersions") if isinstance(config, dict) else None
    if not isinstance(minimums, dict):
        return {}
    return {str(k): str(v) for k, v in minimums.items()}


def get_dependency_version_facts(repo_path: str | Path, archetype_config: Any) -> list[VersionData]:
    """Installed versions of every package the archetype sets a minimum for."""
    minimums = minimum_dependency_versions(archetype_config)
    if not minimums:
        logger.debug("No minimumDependencyVersions configured; skipping dependency collection")
        return []
    deps = collect_local_dependencies(Path(repo_path))
    found = find_properties_in_tree(deps, minimums)
    logger.info("Found %d watched dependencies in %s", len(found), repo_path)
    return found


def analyze_versions(installed: list[Any]) -> list[dict[str, str]]:
    """Failures for every watched dependency below its required version.

    A range that is not a concrete version (an unlocked ``package.json``
    entry) is never reported.
    """
    failures: list[dict[str, str]] = []
    for item in installed:
        data = item.to_dict() if isinstance(item, VersionData) else item
        if not isinstance(data, dict):
            continue
        ver, minimum = str(data.get("ver", "")), str(data.get("min", ""))
        if not version_meets_requirement(ver, minimum) and is_version(ver):
            failure = {
                "dependency": str(data.get("dep", "")),
                "currentVersion": ver,
                "requiredVersion": minimum,
            }
            logger.warning("Outdated dependency: %s %s (requires %s)", failure["dependency"], ver, minimum)
            failures.append(failure)
    return failures


async def repo_dependency_versions(params: dict[str, Any], almanac: Almanac) -> list[dict[str, str]]:
    """Precomputed once per run with ``{"repoPath", "archetypeConfig"}``."""
    repo_path = params.get("repoPath")
    if not repo_path:
        return []
    return [v.to_dict() for v in get_dependency_version_facts(repo_path, params.get("archetypeConfig"))]


async def repo_dependency_analysis(params: dict[str, Any], almanac: Almanac) -> dict[str, Any]:
    """``{"result": [{dependency, currentVersion, requiredVersion}, ...]}``."""
    result: dict[str, Any] = {"result": []}
    file_data = await almanac.fact_value("fileData") or {}
    if file_data.get("fileName") != REPO_GLOBAL_CHECK:
        return result

    installed = await almanac.fact_value("repoDependencyVersions") or []
    result["result"] = analyze_versions(list(installed))
    if params.get("resultFact"):
        almanac.add_runtime_fact(params["resultFact"], result)
    return result


DEPENDENCY_FACTS: tuple[FactDefn, ...] = (
    FactDefn(
        name="repoDependencyVersions",
        fn=repo_dependency_versions,
        description="Installed versions of watched dependencies",
        kind="global",
        priority=10,
    ),
    FactDefn(
        name="repoDependencyAnalysis",
        fn=repo_dependency_analysis,
        description="Dependencies installed below their required minimum",
        kind="global-function",
    ),
)
