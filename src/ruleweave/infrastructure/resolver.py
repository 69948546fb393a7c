"""Archetype, rule and exemption resolution: config server first, then local files."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx

from ruleweave.infrastructure.cache import TTLCache
from ruleweave.infrastructure.exemptions import (
    Exemption,
    MalformedDataError,
    load_local_exemptions,
    parse_exemptions,
)
from ruleweave.infrastructure.paths import is_path_inside

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class ResolutionError(Exception):
    """Raised when no source (remote or local) can supply a requested item."""


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArchetypeConfig:
    """A named bundle of rules, facts, operators and analysis settings."""

    name: str
    rules: tuple[str, ...] = ()
    operators: tuple[str, ...] = ()
    facts: tuple[str, ...] = ()
    plugins: tuple[str, ...] = ()
    config: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, name: str, data: Any) -> ArchetypeConfig:
        """Build from archetype JSON.

        Raises
        ------
        ValueError
            If *data* is not an object or its lists are not lists of strings.
        """
        if not isinstance(data, dict):
            msg = f"Archetype '{name}' must be a JSON object"
            raise ValueError(msg)
        lists: dict[str, tuple[str, ...]] = {}
        for key in ("rules", "operators", "facts", "plugins"):
            raw = data.get(key) or []
            if not isinstance(raw, list) or not all(isinstance(x, str) for x in raw):
                msg = f"Archetype '{name}': '{key}' must be a list of strings"
                raise ValueError(msg)
            lists[key] = tuple(raw)
        config = data.get("config") or {}
        if not isinstance(config, dict):
            msg = f"Archetype '{name}': 'config' must be an object"
            raise ValueError(msg)
        return cls(name=str(data.get("name") or name), config=dict(config), **lists)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "rules": list(self.rules),
            "operators": list(self.operators),
            "facts": list(self.facts),
            "plugins": list(self.plugins),
            "config": dict(self.config),
        }


def is_valid_rule(rule: Any) -> bool:
    """A rule needs a name, an ``all``/``any`` condition root and an event type."""
    if not isinstance(rule, dict) or not isinstance(rule.get("name"), str):
        return False
    conditions = rule.get("conditions")
    if not isinstance(conditions, dict) or not ({"all", "any"} & set(conditions)):
        return False
    event = rule.get("event")
    return isinstance(event, dict) and isinstance(event.get("type"), str)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ConfigResolver:
    """Resolves configuration through a shared :class:`TTLCache`.

    Every lookup tries the config server (when one is configured) with a
    short timeout and falls back to ``local_config_path`` on any transport
    error, non-200 status or malformed body.
    """

    def __init__(
        self,
        local_config_path: Path | None = None,
        config_server: str | None = None,
        cache: TTLCache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        log_prefix: str = "",
        shared_secret: str = "",
    ) -> None:
        self.local_config_path = Path(local_config_path) if local_config_path else None
        self.config_server = config_server.rstrip("/") if config_server else None
        self.cache = cache if cache is not None else TTLCache()
        self.timeout = timeout
        self.log_prefix = log_prefix
        self.shared_secret = shared_secret
        self._lock = threading.Lock()
        self._loaded: set[str] = set()

    # -- transport -----------------------------------------------------------

    def _fetch_json(self, endpoint: str) -> Any | None:
        """GET ``<server><endpoint>``; None when there is no server or it failed."""
        if not self.config_server:
            return None
        url = f"{self.config_server}{endpoint}"
        headers = {"X-Log-Prefix": self.log_prefix}
        if self.shared_secret:
            headers["X-Shared-Secret"] = self.shared_secret
        try:
            response = httpx.get(url, headers=headers, timeout=self.timeout)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Config server request failed for %s: %s", url, exc)
            return None
        if response.status_code != 200:
            logger.warning("Config server returned %s for %s", response.status_code, url)
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Config server returned malformed JSON for %s", url)
            return None

    def _read_local(self, *candidates: str) -> Any | None:
        """Parse the first existing candidate under the local config directory."""
        if self.local_config_path is None:
            return None
        for relative in candidates:
            path = self.local_config_path / relative
            if not is_path_inside(path, self.local_config_path):
                logger.error("Refusing config path outside %s: %s", self.local_config_path, path)
                continue
            if not path.is_file():
                continue
            try:
                return json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Cannot read config file %s: %s", path, exc)
        return None

    # -- archetypes ------------------------------------------------------------

    def get_archetype(self, name: str) -> ArchetypeConfig:
        """Resolve archetype *name*.

        Raises
        ------
        ResolutionError
            If neither the server nor the local directory supplies a valid
            archetype.
        """
        key = f"archetype:{name}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        archetype: ArchetypeConfig | None = None
        for source, data in (
            ("remote", lambda: self._fetch_json(f"/archetypes/{quote(name)}")),
            (
                "local",
                lambda: self._read_local(f"{name}.json", f"{name}/{name}.json", f"{name}-archetype.json"),
            ),
        ):
            raw = data()
            if raw is None:
                continue
            try:
                archetype = ArchetypeConfig.from_dict(name, raw)
            except ValueError as exc:
                logger.warning("Ignoring %s archetype '%s': %s", source, name, exc)
                continue
            logger.info("Loaded archetype '%s' from %s source", name, source)
            break

        if archetype is None:
            msg = f"Archetype '{name}' could not be resolved from any source"
            raise ResolutionError(msg)

        with self._lock:
            self.cache.set(key, archetype)
            self._loaded.add(name)
        return archetype

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded

    # -- rules ---------------------------------------------------------------

    def load_rule(self, archetype: str, rule_name: str) -> dict[str, Any] | None:
        """Resolve one rule body, or None when no source has a valid one."""
        key = f"{archetype}:{rule_name}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        rule = self._fetch_json(f"/archetypes/{quote(archetype)}/rules/{quote(rule_name)}")
        if rule is not None and not is_valid_rule(rule):
            logger.warning("Remote rule '%s' is invalid; trying local files", rule_name)
            rule = None
        if rule is None:
            rule = self._read_local(
                f"rules/{rule_name}-rule.json",
                f"{archetype}-{rule_name}.json",
                f"{archetype}/{rule_name}.json",
            )
            if rule is not None and not is_valid_rule(rule):
                logger.error("Invalid rule '%s' skipped", rule_name)
                rule = None

        if rule is None:
            logger.error("Rule '%s' for archetype '%s' not found", rule_name, archetype)
            return None
        self.cache.set(key, rule)
        return rule  # type: ignore[no-any-return]

    def load_rules(self, archetype: ArchetypeConfig) -> list[dict[str, Any]]:
        """Resolve every rule listed by *archetype*.

        Raises
        ------
        ResolutionError
            If the archetype lists rules but none of them could be loaded.
        """
        remote = self._fetch_json(f"/archetypes/{quote(archetype.name)}/rules")
        if isinstance(remote, list):
            valid = [r for r in remote if is_valid_rule(r)]
            if len(valid) != len(remote):
                logger.error("Skipped %d invalid remote rules", len(remote) - len(valid))
            if valid:
                return valid

        rules = [
            rule
            for rule in (self.load_rule(archetype.name, name) for name in archetype.rules)
            if rule is not None
        ]
        if archetype.rules and not rules:
            msg = f"No rules could be loaded for archetype '{archetype.name}'"
            raise ResolutionError(msg)
        logger.info("Loaded %d/%d rules for archetype '%s'", len(rules), len(archetype.rules), archetype.name)
        return rules

    # -- exemptions ------------------------------------------------------------

    def load_exemptions(self, archetype: str) -> list[Exemption]:
        key = f"exemptions:{archetype}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached  # type: ignore[no-any-return]

        exemptions: list[Exemption] | None = None
        remote = self._fetch_json(f"/archetypes/{quote(archetype)}/exemptions")
        if remote is not None:
            try:
                exemptions = parse_exemptions(remote, "config server")
            except MalformedDataError as exc:
                logger.warning("%s", exc)
        if exemptions is None:
            exemptions = (
                load_local_exemptions(self.local_config_path, archetype)
                if self.local_config_path is not None
                else []
            )
        self.cache.set(key, exemptions)
        return exemptions

    # -- invalidation ------------------------------------------------------------

    def invalidate(self) -> None:
        """Forget every cached archetype, rule and exemption list."""
        with self._lock:
            self.cache.clear()
            self._loaded.clear()
        logger.info("Configuration cache invalidated")
