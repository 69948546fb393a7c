"""Pattern facts: ``repoFileAnalysis`` (per file) and ``globalFileAnalysis`` (whole repository)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ruleweave.engine.types import REPO_GLOBAL_CHECK, FactDefn
from ruleweave.plugins.patterns.analysis import (
    as_pattern_list,
    compile_patterns,
    find_matches,
    global_analysis,
    parse_flags,
)

if TYPE_CHECKING:
    from ruleweave.engine.almanac import Almanac

logger = logging.getLogger(__name__)


async def repo_file_analysis(params: dict[str, Any], almanac: Almanac) -> dict[str, Any]:
    """Find ``checkPattern`` matches in the current file.

    When ``resultFact`` names a runtime fact that already holds a result,
    the new matches are appended to it so several rules can accumulate
    into one fact.
    """
    file_data = await almanac.fact_value("fileData") or {}
    patterns = as_pattern_list(params.get("checkPattern"))
    content = file_data.get("fileContent")
    result_fact = params.get("resultFact")

    if file_data.get("fileName") == REPO_GLOBAL_CHECK or not patterns or not content:
        return {"result": [], "summary": {"totalMatches": 0, "patterns": patterns}}

    previous: list[dict[str, Any]] = []
    if result_fact:
        existing = almanac.runtime_fact(result_fact)
        if isinstance(existing, dict) and isinstance(existing.get("result"), list):
            previous = list(existing["result"])

    try:
        compiled = compile_patterns(patterns, parse_flags(params.get("flags")))
        matches = find_matches(str(content), compiled, str(file_data.get("filePath", "")))
    except Exception:
        logger.exception("Error scanning %s", file_data.get("filePath"))
        matches = []

    result = {
        "result": previous + matches,
        "summary": {"totalMatches": len(matches), "patterns": patterns},
    }
    if matches:
        logger.debug("%d matches in %s", len(matches), file_data.get("filePath"))
    if result_fact:
        almanac.add_runtime_fact(result_fact, result)
    return result


async def global_file_analysis(params: dict[str, Any], almanac: Almanac) -> dict[str, Any]:
    """Count ``newPatterns``/``legacyPatterns``/``patterns`` across every collected file.

    Only the sentinel record is analyzed; every other record gets the
    empty shape so the repository is scanned once per run.
    """
    empty: dict[str, Any] = {"patternData": [], "matchCounts": {}, "summary": {}}
    file_data = await almanac.fact_value("fileData") or {}
    if file_data.get("fileName") != REPO_GLOBAL_CHECK:
        return empty
    try:
        files = await almanac.fact_value("globalFileMetadata")
        if not isinstance(files, list):
            logger.error("globalFileMetadata is not available")
            return empty

        new_patterns = as_pattern_list(params.get("newPatterns"))
        legacy_patterns = as_pattern_list(params.get("legacyPatterns"))
        patterns = as_pattern_list(params.get("patterns"))
        result = global_analysis(
            files,
            new_patterns,
            legacy_patterns,
            patterns,
            file_filter=str(params.get("fileFilter") or ".*"),
            output_grouping=str(params.get("outputGrouping") or "pattern"),
        )
        logger.info(
            "Global file analysis: %d new, %d legacy, %d other patterns; %d matches across %d files",
            len(new_patterns),
            len(legacy_patterns),
            len(patterns),
            result["summary"]["totalMatches"],
            result["summary"]["totalFiles"],
        )
    except Exception:
        logger.exception("Error in globalFileAnalysis")
        return empty

    if params.get("resultFact"):
        almanac.add_runtime_fact(params["resultFact"], result)
    return result


PATTERN_FACTS: tuple[FactDefn, ...] = (
    FactDefn(
        name="repoFileAnalysis",
        fn=repo_file_analysis,
        description="Regex matches with line numbers in the current file",
    ),
    FactDefn(
        name="globalFileAnalysis",
        fn=global_file_analysis,
        description="Pattern counts and new/legacy totals across the repository",
        kind="global-function",
    ),
)
