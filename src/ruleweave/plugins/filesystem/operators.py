"""Filesystem operators: required files and the standard directory tree."""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import Any

from ruleweave.engine.types import REPO_GLOBAL_CHECK, OperatorDefn

logger = logging.getLogger(__name__)


def missing_required_files(fact_value: Any, expected: Any) -> bool:
    """True when the ``missingRequiredFiles`` fact lists anything as missing."""
    if not isinstance(fact_value, dict) or not isinstance(fact_value.get("missing"), list):
        return False
    has_missing = len(fact_value["missing"]) > 0
    return has_missing if expected is not False else not has_missing


def non_standard_directory_structure(fact_value: Any, standard_structure: Any) -> bool:
    """True when a file's directory chain leaves the configured tree.

    *standard_structure* is nested ``{"dir": {...}}``; a ``None`` value
    accepts anything below that directory.  *fact_value* is a
    repository-relative path or a ``fileData`` dict.  Root-level files and
    the sentinel record always conform.
    """
    file_path = fact_value.get("filePath") if isinstance(fact_value, dict) else fact_value
    if not isinstance(file_path, str) or not isinstance(standard_structure, dict):
        return False
    if file_path == REPO_GLOBAL_CHECK:
        return False

    directories = PurePosixPath(file_path.replace("\\", "/")).parts[:-1]
    level: Any = standard_structure
    for directory in directories:
        if level is None:
            return False
        if not isinstance(level, dict) or directory not in level:
            logger.debug("'%s' is outside the standard structure at '%s'", file_path, directory)
            return True
        level = level[directory]
    return False


FILESYSTEM_OPERATORS: tuple[OperatorDefn, ...] = (
    OperatorDefn(
        name="missingRequiredFiles",
        fn=missing_required_files,
        description="Required files are missing",
    ),
    OperatorDefn(
        name="nonStandardDirectoryStructure",
        fn=non_standard_directory_structure,
        description="File lives outside the standard directory structure",
    ),
)
