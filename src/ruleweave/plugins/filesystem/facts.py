"""Required-file checks against the collected file list."""

from __future__ import annotations

import logging
import os
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from ruleweave.engine.types import REPO_GLOBAL_CHECK, FactDefn
from ruleweave.infrastructure.paths import is_path_inside

if TYPE_CHECKING:
    from ruleweave.engine.almanac import Almanac

logger = logging.getLogger(__name__)


def _required_from_archetype(archetype_config: Any) -> list[str]:
    config = archetype_config.get("config") if isinstance(archetype_config, dict) else None
    required = config.get("requiredFiles") if isinstance(config, dict) else None
    return [str(p) for p in required] if isinstance(required, list) else []


def check_required_files(
    required_files: list[str],
    repo_path: str,
    collected_paths: list[str],
) -> dict[str, Any]:
    """Split *required_files* into ``missing``/``found``/``blocked``.

    Paths that resolve outside *repo_path* are listed under ``blocked`` and
    never checked for existence.  The comparison with *collected_paths*
    ignores case.
    """
    known = {PurePosixPath(p).as_posix().lower() for p in collected_paths}
    missing: list[str] = []
    found: list[str] = []
    blocked: list[str] = []

    for required in required_files:
        if not repo_path or not is_path_inside(os.path.join(repo_path, required), repo_path):
            logger.warning("Required file '%s' resolves outside the repository; skipped", required)
            blocked.append(required)
            continue
        normalized = PurePosixPath(os.path.normpath(required).replace(os.sep, "/")).as_posix().lower()
        if normalized in known:
            found.append(required)
        else:
            missing.append(required)

    return {"missing": missing, "found": found, "total": len(required_files), "blocked": blocked}


async def missing_required_files(params: dict[str, Any], almanac: Almanac) -> dict[str, Any]:
    """``{missing, found, total, blocked}`` for ``requiredFiles`` (or the archetype's list)."""
    file_data = await almanac.fact_value("fileData") or {}
    if file_data.get("fileName") != REPO_GLOBAL_CHECK:
        return {"missing": [], "found": [], "total": 0, "blocked": []}

    required = params.get("requiredFiles")
    if not isinstance(required, list):
        required = _required_from_archetype(await almanac.fact_value("archetypeConfig"))
    repo_path = str(await almanac.fact_value("repoPath") or "")
    files = await almanac.fact_value("globalFileMetadata") or []
    collected = [str(f.get("filePath", "")) for f in files if isinstance(f, dict)]

    result = check_required_files([str(p) for p in required], repo_path, collected)
    if result["missing"]:
        logger.info("Missing required files: %s", ", ".join(result["missing"]))
    if params.get("resultFact"):
        almanac.add_runtime_fact(params["resultFact"], result)
    return result


FILESYSTEM_FACTS: tuple[FactDefn, ...] = (
    FactDefn(
        name="missingRequiredFiles",
        fn=missing_required_files,
        description="Checks for required files in the repository",
        kind="global-function",
    ),
)
