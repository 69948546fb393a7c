"""Path containment checks shared by the collector, loaders and facts."""

from __future__ import annotations

import os
from pathlib import Path


class PathTraversalError(ValueError):
    """Raised when a resolved path escapes its allowed root directory."""


def is_path_inside(path: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    """Return True if *path* (after resolving symlinks) lies within *root*."""
    resolved = Path(os.path.realpath(path))
    base = Path(os.path.realpath(root))
    return resolved == base or base in resolved.parents


def ensure_within_root(path: str | os.PathLike[str], root: str | os.PathLike[str]) -> Path:
    """Resolve *path* against *root* and return the real path.

    Raises
    ------
    PathTraversalError
        If the resolved path is outside *root*.
    """
    candidate = Path(root) / path
    if not is_path_inside(candidate, root):
        msg = f"Path '{path}' resolves outside of '{root}'"
        raise PathTraversalError(msg)
    return Path(os.path.realpath(candidate))
