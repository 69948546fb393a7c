"""Per-repository overrides read from ``.ruleweave.yml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ruleweave.infrastructure.paths import is_path_inside

logger = logging.getLogger(__name__)

REPO_CONFIG_FILE = ".ruleweave.yml"


@dataclass(frozen=True)
class RepoConfig:
    """Repository-local additions to the archetype."""

    additional_rules: tuple[dict[str, Any], ...] = ()
    additional_facts: tuple[str, ...] = ()
    additional_operators: tuple[str, ...] = ()
    sensitive_file_false_positives: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "additionalRules": [dict(r) for r in self.additional_rules],
            "additionalFacts": list(self.additional_facts),
            "additionalOperators": list(self.additional_operators),
            "sensitiveFileFalsePositives": list(self.sensitive_file_false_positives),
        }


def _string_list(data: dict[str, Any], key: str) -> tuple[str, ...]:
    raw = data.get(key)
    if raw is None:
        return ()
    if not isinstance(raw, list):
        logger.warning("%s: '%s' must be a list, ignoring", REPO_CONFIG_FILE, key)
        return ()
    return tuple(str(item) for item in raw if isinstance(item, (str, int, float)))


def load_repo_config(repo_path: Path) -> RepoConfig:
    """Load ``.ruleweave.yml`` from the repository root.

    Falls back to an empty :class:`RepoConfig` for a missing, unreadable or
    malformed file.  A config file whose real path escapes the repository
    (a symlink pointing elsewhere) is ignored.
    """
    config_path = Path(repo_path) / REPO_CONFIG_FILE
    if not config_path.is_file():
        return RepoConfig()
    if not is_path_inside(config_path, repo_path):
        logger.error("Refusing %s outside of repository %s", REPO_CONFIG_FILE, repo_path)
        return RepoConfig()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using defaults", REPO_CONFIG_FILE)
        return RepoConfig()

    if data is None:
        return RepoConfig()
    if not isinstance(data, dict):
        logger.warning("%s must be a mapping, using defaults", REPO_CONFIG_FILE)
        return RepoConfig()

    rules_raw = data.get("additionalRules") or []
    if not isinstance(rules_raw, list):
        logger.warning("%s: 'additionalRules' must be a list, ignoring", REPO_CONFIG_FILE)
        rules_raw = []
    rules = tuple(r for r in rules_raw if isinstance(r, dict))

    config = RepoConfig(
        additional_rules=rules,
        additional_facts=_string_list(data, "additionalFacts"),
        additional_operators=_string_list(data, "additionalOperators"),
        sensitive_file_false_positives=_string_list(data, "sensitiveFileFalsePositives"),
    )
    logger.debug("Loaded repository config: %d additional rules", len(config.additional_rules))
    return config
