"""Core records shared by the registry, the almanac, plugins and the analyzer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ruleweave.engine.almanac import Almanac

# File name/path of the synthetic record that triggers repository-wide checks.
REPO_GLOBAL_CHECK = "REPO_GLOBAL_CHECK"

VALID_FACT_KINDS: frozenset[str] = frozenset({"iterative", "global", "global-function"})
VALID_FAILURE_LEVELS: frozenset[str] = frozenset({"warning", "fatality", "exempt", "error"})


@dataclass(frozen=True)
class FileRecord:
    """One collected file, or the whole-repository sentinel.

    ``file_path`` is relative to the repository root for collected files.
    """

    file_name: str
    file_path: str
    file_content: str

    @property
    def is_global(self) -> bool:
        return self.file_name == REPO_GLOBAL_CHECK

    def to_dict(self) -> dict[str, str]:
        """Rule-boundary shape (camelCase keys)."""
        return {
            "fileName": self.file_name,
            "filePath": self.file_path,
            "fileContent": self.file_content,
        }


def global_record() -> FileRecord:
    """Build the sentinel record used for repository-wide facts."""
    return FileRecord(
        file_name=REPO_GLOBAL_CHECK,
        file_path=REPO_GLOBAL_CHECK,
        file_content=REPO_GLOBAL_CHECK,
    )


@dataclass(frozen=True)
class FactDefn:
    """A named, parameterized data producer.

    ``kind`` is one of:

    * ``"iterative"``: evaluated on demand for every record;
    * ``"global"``: computed once per run by the analyzer with
      ``{"repoPath", "archetypeConfig"}`` and injected as a base fact;
    * ``"global-function"``: evaluated on demand with rule parameters,
      meaningful only against the sentinel record.
    """

    name: str
    fn: Callable[[dict[str, Any], Almanac], Awaitable[Any]]
    description: str = ""
    kind: str = "iterative"
    priority: int = 1


@dataclass(frozen=True)
class OperatorDefn:
    """A named boolean comparison between a fact value and a rule value."""

    name: str
    fn: Callable[[Any, Any], Any]
    description: str = ""


@dataclass(frozen=True)
class PluginDiagnostic:
    """Structured, non-fatal report of an exception inside a plugin."""

    message: str
    level: str = "warning"
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Plugin:
    """A named, versioned bundle of facts and operators.

    ``on_error`` turns an exception raised by one of this plugin's facts or
    operators into a :class:`PluginDiagnostic`.  When it is ``None`` the
    registry builds a default diagnostic.
    """

    name: str
    version: str
    facts: tuple[FactDefn, ...] = ()
    operators: tuple[OperatorDefn, ...] = ()
    on_error: Callable[[BaseException], PluginDiagnostic] | None = None
    description: str = ""


@dataclass(frozen=True)
class RuleFailure:
    """A rule whose conditions held (or failed to evaluate) for one record."""

    rule_name: str
    level: str  # "warning" | "fatality" | "exempt" | "error"
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleFailure": self.rule_name,
            "level": self.level,
            "details": dict(self.details),
        }
