"""Regex scanning helpers shared by the per-file and whole-repository pattern facts."""

from __future__ import annotations

import bisect
import logging
import re
from functools import reduce
from operator import or_
from typing import Any

from ruleweave.engine.types import REPO_GLOBAL_CHECK

logger = logging.getLogger(__name__)

MAX_LINE_LENGTH = 200
MASK = "********"

_FLAG_LETTERS: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}
_SENSITIVE_RE = re.compile(
    r"""(?P<key>password|passwd|secret|token|api[_-]?key)(?P<sep>["']?\s*[:=]\s*)(?P<quote>["']?)(?P<value>[^"'\s,;]+)""",
    re.IGNORECASE,
)
_NON_WORD_RE = re.compile(r"\W")


def as_pattern_list(value: Any) -> list[str]:
    """Normalize a ``str | list[str] | None`` parameter to a list of strings."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None and v != ""]
    return [str(value)]


def parse_flags(flags: str | None) -> re.RegexFlag:
    """Translate flag letters to :mod:`re` flags.

    ``g`` (global) is accepted and ignored: every scan reports all matches.
    """
    if not flags:
        return re.RegexFlag(0)
    selected: list[re.RegexFlag] = []
    for letter in flags:
        if letter == "g":
            continue
        flag = _FLAG_LETTERS.get(letter)
        if flag is None:
            logger.warning("Ignoring unsupported regex flag '%s'", letter)
            continue
        selected.append(flag)
    return reduce(or_, selected, re.RegexFlag(0))


def mask_sensitive_data(text: str) -> str:
    """Replace values assigned to password/secret/token/api-key names."""
    return _SENSITIVE_RE.sub(
        lambda m: f"{m.group('key')}{m.group('sep')}{m.group('quote')}{MASK}",
        text,
    )


def chunk_line(line: str, limit: int = MAX_LINE_LENGTH) -> list[str]:
    """Split *line* into pieces of at most *limit* characters.

    Each cut moves back from the budget to the nearest non-word character;
    when the whole window is one token the cut falls at the budget.
    """
    if len(line) <= limit:
        return [line]
    pieces: list[str] = []
    start = 0
    while start < len(line):
        end = start + limit
        if end < len(line):
            while end > start and not _NON_WORD_RE.match(line[end]):
                end -= 1
            if end == start:
                end = start + limit
        else:
            end = len(line)
        pieces.append(line[start:end])
        start = end
    return pieces


def chunk_content(content: str, limit: int = MAX_LINE_LENGTH) -> list[str]:
    lines: list[str] = []
    for line in content.split("\n"):
        lines.extend(chunk_line(line, limit))
    return lines


def compile_patterns(patterns: list[str], flags: int = 0) -> list[tuple[str, re.Pattern[str]]]:
    compiled: list[tuple[str, re.Pattern[str]]] = []
    for pattern in patterns:
        try:
            compiled.append((pattern, re.compile(pattern, flags)))
        except re.error as exc:
            logger.error("Invalid pattern %r: %s", pattern, exc)
    return compiled


def find_matches(
    content: str,
    patterns: list[tuple[str, re.Pattern[str]]],
    file_path: str = "",
) -> list[dict[str, Any]]:
    """Scan *content* (after long-line chunking) for every pattern.

    ``lineNumber`` is 1 plus the number of newlines before the match in the
    chunked text; ``line`` is the masked text of that chunked line.
    """
    lines = chunk_content(content)
    processed = "\n".join(lines)
    line_starts = [0]
    for line in lines[:-1]:
        line_starts.append(line_starts[-1] + len(line) + 1)

    results: list[dict[str, Any]] = []
    for source, regex in patterns:
        for match in regex.finditer(processed):
            index = bisect.bisect_right(line_starts, match.start()) - 1
            results.append(
                {
                    "match": source,
                    "matchText": match.group(0),
                    "lineNumber": index + 1,
                    "line": mask_sensitive_data(lines[index]),
                    "filePath": file_path,
                }
            )
    return results


def count_matches(content: str, regex: re.Pattern[str]) -> list[dict[str, Any]]:
    """Per-line match details for whole-repository counting."""
    details: list[dict[str, Any]] = []
    for number, line in enumerate(content.split("\n"), start=1):
        for match in regex.finditer(line):
            details.append(
                {
                    "lineNumber": number,
                    "match": regex.pattern,
                    "matchText": match.group(0),
                    "column": match.start() + 1,
                    "context": mask_sensitive_data(line),
                }
            )
    return details


def global_analysis(
    files: list[dict[str, Any]],
    new_patterns: list[str],
    legacy_patterns: list[str],
    patterns: list[str],
    file_filter: str = ".*",
    output_grouping: str = "pattern",
) -> dict[str, Any]:
    """Aggregate pattern counts across every collected file.

    The sentinel record is skipped.  The result always carries
    ``patternData``, ``matchCounts`` and ``summary``; with
    ``output_grouping="file"`` it also carries per-file ``fileResults``.
    """
    filter_re = re.compile(file_filter or ".*")
    selected = [
        f
        for f in files
        if f.get("fileName") != REPO_GLOBAL_CHECK and filter_re.search(str(f.get("filePath", "")))
    ]
    all_patterns = [*new_patterns, *legacy_patterns, *patterns]
    compiled = dict(compile_patterns(list(dict.fromkeys(all_patterns))))
    pattern_data: dict[str, dict[str, Any]] = {
        p: {"pattern": p, "count": 0, "files": []} for p in dict.fromkeys(all_patterns)
    }
    file_results: list[dict[str, Any]] = []

    for record in selected:
        content = record.get("fileContent")
        if not content:
            continue
        file_entry: dict[str, Any] | None = None
        for pattern, entry in pattern_data.items():
            regex = compiled.get(pattern)
            if regex is None:
                continue
            details = count_matches(content, regex)
            if not details:
                continue
            entry["count"] += len(details)
            entry["files"].append(
                {"filePath": record.get("filePath"), "matchCount": len(details), "matches": details}
            )
            if output_grouping == "file":
                if file_entry is None:
                    file_entry = {
                        "fileName": record.get("fileName"),
                        "filePath": record.get("filePath"),
                        "patternMatches": [],
                        "totalMatches": 0,
                    }
                file_entry["patternMatches"].append(
                    {"pattern": pattern, "matchCount": len(details), "matches": details}
                )
                file_entry["totalMatches"] += len(details)
        if file_entry is not None:
            file_results.append(file_entry)

    counts = {p: e["count"] for p, e in pattern_data.items()}
    new_counts = {p: counts.get(p, 0) for p in new_patterns}
    legacy_counts = {p: counts.get(p, 0) for p in legacy_patterns}
    result: dict[str, Any] = {
        "patternData": list(pattern_data.values()),
        "matchCounts": counts,
        "summary": {
            "totalFiles": len(selected),
            "totalMatches": sum(counts.values()),
            "newPatternCounts": new_counts,
            "legacyPatternCounts": legacy_counts,
            "newPatternsTotal": sum(new_counts.values()),
            "legacyPatternsTotal": sum(legacy_counts.values()),
        },
    }
    if output_grouping == "file":
        result["fileResults"] = file_results
    return result
