"""Grammar selection and parsing for JavaScript/TypeScript sources."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tree_sitter import Language, Parser

from ruleweave.engine.types import REPO_GLOBAL_CHECK

if TYPE_CHECKING:
    from collections.abc import Callable

    from tree_sitter import Tree

logger = logging.getLogger(__name__)


# ---- Language loaders (lazy, handle ImportError) ----


def _load_javascript() -> Language:
    import tree_sitter_javascript as tsjavascript

    return Language(tsjavascript.language())


def _load_typescript() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_typescript())


def _load_tsx() -> Language:
    import tree_sitter_typescript as tstypescript

    return Language(tstypescript.language_tsx())


# Extension -> (language name, loader).
_EXTENSION_LOADERS: dict[str, tuple[str, Callable[[], Language]]] = {
    ".js": ("javascript", _load_javascript),
    ".jsx": ("javascript", _load_javascript),
    ".mjs": ("javascript", _load_javascript),
    ".cjs": ("javascript", _load_javascript),
    ".ts": ("typescript", _load_typescript),
    ".tsx": ("tsx", _load_tsx),
}

# Loaded grammars per extension (None means "tried and failed / unsupported").
_LANG_CACHE: dict[str, Language | None] = {}


def get_language(extension: str) -> Language | None:
    """Grammar for a file extension, or ``None`` if unsupported/unavailable."""
    extension = extension.lower()
    if extension in _LANG_CACHE:
        return _LANG_CACHE[extension]

    entry = _EXTENSION_LOADERS.get(extension)
    if entry is None:
        _LANG_CACHE[extension] = None
        return None

    try:
        language = entry[1]()
    except ImportError:
        logger.warning("Grammar for %s files is not installed", extension)
        _LANG_CACHE[extension] = None
        return None

    _LANG_CACHE[extension] = language
    return language


def language_name(extension: str) -> str | None:
    entry = _EXTENSION_LOADERS.get(extension.lower())
    return entry[0] if entry else None


def supported_extensions() -> frozenset[str]:
    """Return the set of file extensions with available grammars."""
    return frozenset(ext for ext in _EXTENSION_LOADERS if get_language(ext) is not None)


def clear_cache() -> None:
    """Clear the grammar cache (useful for testing)."""
    _LANG_CACHE.clear()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AstResult:
    """Outcome of parsing one file.

    ``tree`` is ``None`` whenever parsing was skipped or failed; ``reason``
    then says why.
    """

    tree: Tree | None
    language: str | None = None
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"tree": self.tree, "language": self.language, "reason": self.reason}


def has_content(file_data: dict[str, Any] | None) -> bool:
    """False for the sentinel record and for empty or whitespace-only files."""
    if not file_data:
        return False
    if file_data.get("fileName") == REPO_GLOBAL_CHECK:
        return False
    content = file_data.get("fileContent")
    return isinstance(content, str) and bool(content.strip())


def generate_ast(file_data: dict[str, Any] | None) -> AstResult:
    """Parse ``file_data["fileContent"]`` with the grammar chosen by extension.

    The parser is never touched for the sentinel record or empty content.
    """
    if file_data is None or not has_content(file_data):
        return AstResult(tree=None, reason="no content")

    name = str(file_data.get("fileName") or file_data.get("filePath") or "")
    extension = posixpath.splitext(name)[1].lower()
    language = get_language(extension)
    if language is None:
        return AstResult(tree=None, reason=f"unsupported extension '{extension}'")

    try:
        parser = Parser(language)
        tree = parser.parse(str(file_data["fileContent"]).encode("utf-8"))
    except Exception:
        logger.exception("Failed to parse %s", name)
        return AstResult(tree=None, language=language_name(extension), reason="parse error")

    logger.debug("Parsed %s as %s", name, language_name(extension))
    return AstResult(tree=tree, language=language_name(extension))
