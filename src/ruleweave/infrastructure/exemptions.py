"""Time-boxed rule exemptions: loading, URL normalization and matching."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ruleweave.infrastructure.paths import is_path_inside

logger = logging.getLogger(__name__)

_DEFAULT_EXPIRATION = "2099-12-31"
_HTTPS_RE = re.compile(r"^https?://([^/]+)/([^/]+/[^/]+?)(?:\.git)?$")
_ORG_REPO_RE = re.compile(r"^[^/]+/[^/]+$")
_UNSAFE_NAME_RE = re.compile(r"[/\\\x00]|^\.+$")


class MalformedDataError(ValueError):
    """Raised when an exemption entry or file does not have the expected shape."""


@dataclass(frozen=True)
class Exemption:
    """Permission for one repository to skip one rule until a date."""

    repo_url: str
    rule: str
    expiration_date: str
    reason: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Exemption:
        """Build from the on-disk/wire shape.

        Raises
        ------
        MalformedDataError
            If ``repoUrl``, ``rule`` or ``expirationDate`` is not a string.
        """
        if not isinstance(data, dict):
            msg = f"Exemption must be an object, got {type(data).__name__}"
            raise MalformedDataError(msg)
        for key in ("repoUrl", "rule", "expirationDate"):
            if not isinstance(data.get(key), str):
                msg = f"Exemption field '{key}' must be a string"
                raise MalformedDataError(msg)
        return cls(
            repo_url=data["repoUrl"],
            rule=data["rule"],
            expiration_date=data["expirationDate"],
            reason=str(data.get("reason") or ""),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "repoUrl": self.repo_url,
            "rule": self.rule,
            "expirationDate": self.expiration_date,
            "reason": self.reason,
        }

    def expires_at(self) -> datetime:
        """Expiration as an aware datetime; bare dates mean midnight UTC."""
        raw = self.expiration_date or _DEFAULT_EXPIRATION
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


def parse_exemptions(data: Any, source: str = "<data>") -> list[Exemption]:
    """Validate a JSON array of exemptions, dropping malformed entries.

    Raises
    ------
    MalformedDataError
        If *data* is not a list.
    """
    if not isinstance(data, list):
        msg = f"Invalid exemptions format in {source}: expected array"
        raise MalformedDataError(msg)
    result: list[Exemption] = []
    for entry in data:
        try:
            result.append(Exemption.from_dict(entry))
        except MalformedDataError as exc:
            logger.warning("Skipping exemption in %s: %s", source, exc)
    return result


def _read_exemption_file(path: Path) -> list[Exemption]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return parse_exemptions(data, path.name)
    except (OSError, json.JSONDecodeError, MalformedDataError) as exc:
        logger.warning("Skipping exemption file %s: %s", path.name, exc)
        return []


def load_local_exemptions(config_path: Path, archetype: str) -> list[Exemption]:
    """Merge the legacy ``<archetype>-exemptions.json`` file with every
    ``<archetype>-exemptions/*-<archetype>-exemptions.json`` file.

    Files are read in sorted order.  A file that is not a JSON array is
    skipped with a warning; so is a file whose real path leaves the
    exemptions directory.
    """
    if _UNSAFE_NAME_RE.search(archetype):
        logger.error("Refusing unsafe archetype name for exemptions: %r", archetype)
        return []

    base = Path(config_path).resolve()
    legacy = base / f"{archetype}-exemptions.json"
    directory = base / f"{archetype}-exemptions"
    suffix = f"-{archetype}-exemptions.json"
    exemptions: list[Exemption] = []

    if legacy.is_file():
        loaded = _read_exemption_file(legacy)
        exemptions.extend(loaded)
        logger.info("Loaded %d exemptions from legacy file", len(loaded))

    if directory.is_dir():
        for path in sorted(directory.iterdir()):
            if not path.name.endswith(suffix):
                continue
            if not is_path_inside(path, directory):
                logger.error("Invalid path: %s is outside of %s", path, directory)
                continue
            loaded = _read_exemption_file(path)
            exemptions.extend(loaded)
            logger.info("Loaded %d valid exemptions from %s", len(loaded), path.name)

    if not legacy.exists() and not directory.exists():
        logger.warning("No exemption files found for archetype %s", archetype)

    logger.info("Loaded %d total exemptions for archetype %s", len(exemptions), archetype)
    return exemptions


def normalize_github_url(url: str) -> str:
    """Return *url* in ``git@host:org/repo.git`` form.

    Accepts SSH URLs, ``http(s)://host/org/repo[.git]`` and bare
    ``org/repo`` (assumed to be on github.com).  An empty string stays empty.

    Raises
    ------
    ValueError
        If *url* matches none of the accepted formats.
    """
    if not url:
        return ""
    if url.startswith("git@"):
        return url if url.endswith(".git") else f"{url}.git"
    match = _HTTPS_RE.match(url)
    if match:
        return f"git@{match.group(1)}:{match.group(2)}.git"
    if _ORG_REPO_RE.match(url):
        return f"git@github.com:{url}.git"
    msg = f"Invalid GitHub URL format: {url}"
    raise ValueError(msg)


def find_exemption(
    repo_url: str | None,
    rule_name: str,
    exemptions: list[Exemption],
    now: datetime | None = None,
) -> Exemption | None:
    """Return the first active exemption for *rule_name* in *repo_url*."""
    if not repo_url:
        logger.debug("Exemptions disabled: repository URL is unknown")
        return None
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    try:
        target = normalize_github_url(repo_url)
    except ValueError as exc:
        logger.warning("Cannot check exemptions: %s", exc)
        return None

    for exemption in exemptions:
        if exemption.rule != rule_name:
            continue
        try:
            if normalize_github_url(exemption.repo_url) != target:
                continue
            if exemption.expires_at() > current:
                logger.info(
                    "Exempting rule %s for repo %s until %s",
                    rule_name,
                    target,
                    exemption.expiration_date,
                )
                return exemption
        except ValueError as exc:
            logger.warning("Ignoring unusable exemption for rule %s: %s", exemption.rule, exc)
    return None


def is_exempt(
    repo_url: str | None,
    rule_name: str,
    exemptions: list[Exemption],
    now: datetime | None = None,
) -> bool:
    """True when an exemption for this repository and rule has not yet expired."""
    return find_exemption(repo_url, rule_name, exemptions, now) is not None
