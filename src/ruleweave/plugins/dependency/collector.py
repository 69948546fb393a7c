"""Installed-dependency discovery from lockfiles and manifests (no subprocesses)."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

# "pkg@^1.0.0", "@scope/pkg@^1.0.0, @scope/pkg@^1.1.0":  then `  version "1.2.3"`.
_YARN_ENTRY_RE = re.compile(
    r'^"?(@?[^@\s",][^@\s",]*)@[^\n]*?:\s*\n(?:[ \t]+[^\n]*\n)*?[ \t]+version:?\s+"?([^"\s]+)"?',
    re.MULTILINE,
)


@dataclass
class LocalDependency:
    """One installed package and the packages installed beneath it."""

    name: str
    version: str
    dependencies: list[LocalDependency] = field(default_factory=list)


@dataclass(frozen=True)
class VersionData:
    """A watched dependency found in the tree.

    ``dep`` is the ``/``-joined path from a top-level package down to the
    watched one; ``ver`` is its installed version and ``min`` the required
    range.
    """

    dep: str
    ver: str
    min: str

    def to_dict(self) -> dict[str, str]:
        return {"dep": self.dep, "ver": self.ver, "min": self.min}


# ---------------------------------------------------------------------------
# Lockfile parsers
# ---------------------------------------------------------------------------


def _npm_v1_tree(entries: dict[str, Any]) -> list[LocalDependency]:
    result: list[LocalDependency] = []
    for name, info in entries.items():
        if not isinstance(info, dict) or not info.get("version"):
            continue
        children = info.get("dependencies")
        result.append(
            LocalDependency(
                name=name,
                version=str(info["version"]),
                dependencies=_npm_v1_tree(children) if isinstance(children, dict) else [],
            )
        )
    return result


def _npm_packages_tree(packages: dict[str, Any]) -> list[LocalDependency]:
    """Rebuild the nesting of a v2/v3 ``packages`` map from its install paths."""
    by_path: dict[str, LocalDependency] = {}
    roots: list[LocalDependency] = []
    for install_path in sorted(packages, key=lambda p: p.count("node_modules/")):
        info = packages[install_path]
        if "node_modules/" not in install_path or not isinstance(info, dict) or not info.get("version"):
            continue
        parent_path, _, name = install_path.rpartition("node_modules/")
        dep = LocalDependency(name=name, version=str(info["version"]))
        by_path[install_path] = dep
        parent = by_path.get(parent_path.rstrip("/"))
        # Workspace installs ("packages/a/node_modules/x") have no package parent.
        if parent is not None:
            parent.dependencies.append(dep)
        else:
            roots.append(dep)
    return roots


def parse_npm_lockfile(repo_path: Path) -> list[LocalDependency]:
    lockfile = repo_path / "package-lock.json"
    if not lockfile.is_file():
        return []
    try:
        data = json.loads(lockfile.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to parse package-lock.json: %s", exc)
        return []
    if not isinstance(data, dict):
        return []

    if isinstance(data.get("packages"), dict):
        deps = _npm_packages_tree(data["packages"])
    elif isinstance(data.get("dependencies"), dict):
        deps = _npm_v1_tree(data["dependencies"])
    else:
        deps = []
    logger.debug("Parsed %d top-level dependencies from package-lock.json", len(deps))
    return deps


def parse_yarn_lockfile(repo_path: Path) -> list[LocalDependency]:
    lockfile = repo_path / "yarn.lock"
    if not lockfile.is_file():
        return []
    try:
        content = lockfile.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("Failed to read yarn.lock: %s", exc)
        return []

    seen: set[str] = set()
    deps: list[LocalDependency] = []
    for match in _YARN_ENTRY_RE.finditer(content):
        name, version = match.group(1), match.group(2)
        if name in seen:
            continue
        seen.add(name)
        deps.append(LocalDependency(name=name, version=version))
    logger.debug("Parsed %d dependencies from yarn.lock", len(deps))
    return deps


def parse_package_json(repo_path: Path) -> list[LocalDependency]:
    """Declared ranges from ``package.json`` when nothing is locked."""
    manifest = repo_path / "package.json"
    if not manifest.is_file():
        return []
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to parse package.json: %s", exc)
        return []
    if not isinstance(data, dict):
        return []

    deps: list[LocalDependency] = []
    seen: set[str] = set()
    for section in ("dependencies", "devDependencies", "peerDependencies"):
        declared = data.get(section)
        if not isinstance(declared, dict):
            continue
        for name, spec in declared.items():
            if name in seen or not isinstance(spec, str):
                continue
            seen.add(name)
            deps.append(LocalDependency(name=name, version=spec))
    return deps


def collect_local_dependencies(repo_path: Path) -> list[LocalDependency]:
    """First non-empty of: package-lock.json, yarn.lock, package.json."""
    for parser in (parse_npm_lockfile, parse_yarn_lockfile, parse_package_json):
        deps = parser(repo_path)
        if deps:
            return deps
    logger.info("No dependency information found in %s", repo_path)
    return []


# ---------------------------------------------------------------------------
# Tree search
# ---------------------------------------------------------------------------


def find_properties_in_tree(
    deps: Iterable[LocalDependency],
    minimum_versions: dict[str, str],
) -> list[VersionData]:
    """Every occurrence of a watched package, at any depth.

    A watched key also matches the same name with a leading ``@`` (so
    ``angular/core`` finds ``@angular/core``).  Each path is visited once.
    """
    results: list[VersionData] = []
    visited: set[str] = set()

    def lookup(name: str) -> str | None:
        for key, minimum in minimum_versions.items():
            if key == name or f"@{key}" == name:
                return minimum
        return None

    def walk(dep: LocalDependency, parent: str) -> None:
        full_name = f"{parent}/{dep.name}" if parent else dep.name
        if full_name in visited:
            return
        visited.add(full_name)
        minimum = lookup(dep.name)
        if minimum is not None:
            results.append(VersionData(dep=full_name, ver=dep.version, min=minimum))
        for child in dep.dependencies:
            walk(child, full_name)

    for dep in deps:
        walk(dep, "")
    return results
