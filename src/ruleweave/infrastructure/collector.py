"""Repository file collector: walk, filter, and read eligible files."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from ruleweave.engine.types import FileRecord, global_record
from ruleweave.infrastructure.paths import is_path_inside

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathFilters:
    """Allow/deny regex patterns applied to absolute file paths.

    An empty ``whitelist`` admits every file that is not blacklisted.
    """

    blacklist: tuple[str, ...] = ()
    whitelist: tuple[str, ...] = ()
    _compiled_black: tuple[re.Pattern[str], ...] = field(default=(), repr=False, compare=False)
    _compiled_white: tuple[re.Pattern[str], ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_compiled_black", _compile_all(self.blacklist))
        object.__setattr__(self, "_compiled_white", _compile_all(self.whitelist))

    @classmethod
    def from_config(cls, config: dict[str, object]) -> PathFilters:
        black = config.get("blacklistPatterns") or []
        white = config.get("whitelistPatterns") or []
        return cls(
            blacklist=tuple(str(p) for p in black),  # type: ignore[union-attr]
            whitelist=tuple(str(p) for p in white),  # type: ignore[union-attr]
        )


def _compile_all(patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error:
            logger.warning("Ignoring invalid path pattern: %s", pattern)
    return tuple(compiled)


def is_blacklisted(file_path: str | Path, repo_path: str | Path, filters: PathFilters) -> bool:
    """Return True if *file_path* must be skipped.

    A path whose real location escapes *repo_path* is always blocked,
    whatever the configured patterns say.
    """
    if not is_path_inside(file_path, repo_path):
        logger.warning("Potential path traversal attempt detected: %s", file_path)
        return True
    normalized = Path(os.path.abspath(file_path)).as_posix()
    for pattern in filters._compiled_black:
        if pattern.search(normalized):
            logger.debug("Skipping blacklisted path %s (pattern %s)", normalized, pattern.pattern)
            return True
    return False


def is_whitelisted(file_path: str | Path, repo_path: str | Path, filters: PathFilters) -> bool:
    """Return True if *file_path* is eligible for analysis."""
    if not is_path_inside(file_path, repo_path):
        logger.warning("Potential path traversal attempt detected: %s", file_path)
        return False
    if not filters._compiled_white:
        return True
    normalized = Path(os.path.abspath(file_path)).as_posix()
    return any(pattern.search(normalized) for pattern in filters._compiled_white)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        logger.warning("Cannot read %s", path)
        return None


def iter_repo_files(repo_path: Path, filters: PathFilters) -> Iterator[FileRecord]:
    """Yield a :class:`FileRecord` for every eligible file under *repo_path*.

    Directories are walked in sorted order so runs are reproducible.
    Symlinked directories are not followed; symlinked files are read only
    when their real path stays inside the repository.
    """
    root = Path(os.path.abspath(repo_path))
    stack: list[Path] = [root]

    while stack:
        current = stack.pop()
        try:
            entries = sorted(current.iterdir(), key=lambda p: p.name, reverse=True)
        except OSError:
            logger.warning("Cannot list directory %s", current)
            continue

        for entry in entries:
            if not is_path_inside(entry, root):
                logger.warning("Path traversal attempt detected: %s", os.path.realpath(entry))
                continue

            if entry.is_dir():
                if entry.is_symlink():
                    logger.debug("Not following symlinked directory %s", entry)
                    continue
                if not is_blacklisted(entry, root, filters):
                    stack.append(entry)
                continue

            if not entry.is_file():
                continue
            if is_blacklisted(entry, root, filters) or not is_whitelisted(entry, root, filters):
                continue

            content = _read_text(entry)
            if content is None:
                continue
            logger.debug("Adding file to analysis: %s", entry)
            yield FileRecord(
                file_name=entry.name,
                file_path=entry.relative_to(root).as_posix(),
                file_content=content,
            )


def collect_repo_files(
    repo_path: Path,
    filters: PathFilters | None = None,
    *,
    include_global: bool = True,
) -> list[FileRecord]:
    """Collect every eligible file, followed by the whole-repository sentinel."""
    records = list(iter_repo_files(repo_path, filters or PathFilters()))
    # Depth-first pop order is reversed per directory; present paths sorted.
    records.sort(key=lambda r: r.file_path)
    logger.info("Collected %d files from %s", len(records), repo_path)
    if include_global:
        records.append(global_record())
    return records
