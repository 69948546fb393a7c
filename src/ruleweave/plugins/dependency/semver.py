"""npm-style version ranges evaluated with :mod:`packaging.version`.

Supported range syntax: ``*``/``x`` wildcards and partial versions,
``^`` and ``~`` ranges, ``<``/``<=``/``>``/``>=``/``=`` comparators joined by
whitespace, hyphen ranges (``1.2.3 - 2.0``) and ``||`` alternatives.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)

_PARTIAL_RE = re.compile(
    r"^v?(?P<major>\d+|[xX*])(?:\.(?P<minor>\d+|[xX*]))?(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)
_COMPARATOR_RE = re.compile(r"^(?P<op><=|>=|<|>|=|\^|~>?)?\s*(?P<ver>\S*)$")
_HYPHEN_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")
_WILDCARDS = frozenset({"x", "X", "*"})


class InvalidRangeError(ValueError):
    """Raised for a version or range string outside the supported syntax."""


@dataclass(frozen=True)
class _Partial:
    major: int | None
    minor: int | None
    patch: int | None
    pre: str | None

    def floor(self) -> Version:
        return npm_version(
            f"{self.major or 0}.{self.minor or 0}.{self.patch or 0}" + (f"-{self.pre}" if self.pre else "")
        )


def npm_version(text: str) -> Version:
    """Parse an npm version (``1.2.3``, ``v1.2.3-beta.1``) into a :class:`Version`.

    Prerelease tags PEP 440 cannot express are mapped to ``.dev0`` so they
    still sort before the release.

    Raises
    ------
    InvalidRangeError
        If *text* is not a full ``major.minor.patch`` version.
    """
    match = _PARTIAL_RE.match(text.strip().lstrip("="))
    if not match or match.group("patch") is None or any(
        match.group(k) in _WILDCARDS for k in ("major", "minor", "patch")
    ):
        msg = f"Invalid version: {text!r}"
        raise InvalidRangeError(msg)
    base = f"{match.group('major')}.{match.group('minor')}.{match.group('patch')}"
    pre = match.group("pre")
    if not pre:
        return Version(base)
    try:
        return Version(f"{base}-{pre}")
    except InvalidVersion:
        return Version(f"{base}.dev0")


def is_version(text: str) -> bool:
    try:
        npm_version(text)
    except InvalidRangeError:
        return False
    return True


def _partial(text: str) -> _Partial:
    match = _PARTIAL_RE.match(text)
    if not match:
        msg = f"Invalid version in range: {text!r}"
        raise InvalidRangeError(msg)

    def part(name: str) -> int | None:
        raw = match.group(name)
        return None if raw is None or raw in _WILDCARDS else int(raw)

    major, minor, patch = part("major"), part("minor"), part("patch")
    # Anything after a wildcard is a wildcard too: 1.x.3 == 1.x.
    if major is None:
        minor = patch = None
    elif minor is None:
        patch = None
    return _Partial(major, minor, patch, match.group("pre"))


def _bump(p: _Partial, level: str) -> Version:
    if level == "major":
        return Version(f"{(p.major or 0) + 1}.0.0")
    if level == "minor":
        return Version(f"{p.major or 0}.{(p.minor or 0) + 1}.0")
    return Version(f"{p.major or 0}.{p.minor or 0}.{(p.patch or 0) + 1}")


def _expand(op: str, p: _Partial) -> list[tuple[str, Version]]:
    """Translate one npm comparator into primitive ``(op, Version)`` pairs."""
    if p.major is None:
        return [] if op in {"", "=", ">=", "<=", "^", "~", "~>"} else [("<", Version("0.0.0"))]

    if op == "^":
        if p.major > 0 or p.minor is None:
            upper = _bump(p, "major")
        elif p.minor > 0 or p.patch is None:
            upper = _bump(p, "minor")
        else:
            upper = _bump(p, "patch")
        return [(">=", p.floor()), ("<", upper)]

    if op in {"~", "~>"}:
        upper = _bump(p, "major") if p.minor is None else _bump(p, "minor")
        return [(">=", p.floor()), ("<", upper)]

    partial = p.minor is None or p.patch is None
    next_level = "major" if p.minor is None else "minor"
    if op in {"", "="}:
        if partial:
            return [(">=", p.floor()), ("<", _bump(p, next_level))]
        return [("==", p.floor())]
    if op == ">":
        return [(">=", _bump(p, next_level))] if partial else [(">", p.floor())]
    if op == "<=":
        return [("<", _bump(p, next_level))] if partial else [("<=", p.floor())]
    # ">=" and "<" use the floor of a partial version.
    return [(op, p.floor())]


def _parse_set(text: str) -> list[tuple[str, Version]]:
    text = text.strip()
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        low, high = _partial(hyphen.group(1)), _partial(hyphen.group(2))
        return _expand(">=", low) + _expand("<=", high)

    comparators: list[tuple[str, Version]] = []
    # Join operators separated from their version by spaces (">= 1.2.3").
    tokens = re.sub(r"(<=|>=|<|>|=|\^|~>?)\s+", r"\1", text).split()
    for token in tokens:
        match = _COMPARATOR_RE.match(token)
        if not match:
            msg = f"Invalid comparator: {token!r}"
            raise InvalidRangeError(msg)
        comparators.extend(_expand(match.group("op") or "", _partial(match.group("ver") or "*")))
    return comparators


def parse_range(text: str) -> list[list[tuple[str, Version]]]:
    """Parse *text* into alternatives of primitive comparators.

    Raises
    ------
    InvalidRangeError
        On syntax outside the supported subset.
    """
    if text is None:
        msg = "Range must be a string"
        raise InvalidRangeError(msg)
    stripped = text.strip()
    if stripped in {"", "latest"}:
        return [[]]
    return [_parse_set(alternative) for alternative in stripped.split("||")]


def _test(version: Version, op: str, bound: Version) -> bool:
    if op == ">=":
        return version >= bound
    if op == ">":
        return version > bound
    if op == "<":
        return version < bound
    if op == "<=":
        return version <= bound
    return version == bound


def min_version(text: str) -> Version | None:
    """Lowest version that could satisfy the range (``None`` if none can)."""
    best: Version | None = None
    for alternative in parse_range(text):
        floors = [bound for op, bound in alternative if op in {">=", "=="}]
        floors += [Version(f"{b.major}.{b.minor}.{b.micro + 1}") for op, b in alternative if op == ">"]
        candidate = max(floors) if floors else Version("0.0.0")
        if all(_test(candidate, op, bound) for op, bound in alternative) and (best is None or candidate < best):
            best = candidate
    return best


def _matches(version: Version, alternatives: list[list[tuple[str, Version]]]) -> bool:
    return any(all(_test(version, op, bound) for op, bound in alt) for alt in alternatives)


def semver_satisfies(version: str, range_text: str) -> bool:
    """True if *version* satisfies the npm range *range_text*; False if either is unparseable."""
    try:
        parsed = npm_version(version)
        alternatives = parse_range(range_text)
    except InvalidRangeError as exc:
        logger.debug("semver_satisfies(%r, %r): %s", version, range_text, exc)
        return False
    return _matches(parsed, alternatives)


def version_meets_requirement(installed: str, required: str) -> bool:
    """Does the *installed* dependency meet the *required* minimum?

    * a bare required version means "at least this version";
    * a prerelease install is compared against the range's minimum version;
    * an installed range (a declared, unlocked dependency) is judged by its
      lowest admissible version.

    Empty values are treated as satisfied; unparseable ones are not.
    """
    if not installed or not required:
        return True
    # pnpm peer suffix: "1.0.0(react@18.2.0)" -> "1.0.0"
    installed = installed.strip().split("(", 1)[0]
    # "name@1.2.3" -> "1.2.3"
    if "@" in installed:
        tail = installed.rsplit("@", 1)[1]
        if tail[:1].isdigit():
            installed = tail

    try:
        if is_version(required):
            required_version = npm_version(required)
            if is_version(installed):
                return npm_version(installed) >= required_version
            floor = min_version(installed)
            return floor is not None and floor >= required_version

        if is_version(installed):
            parsed = npm_version(installed)
            if parsed.is_prerelease:
                floor = min_version(required)
                return floor is None or parsed >= floor
            return semver_satisfies(installed, required)

        floor = min_version(installed)
        return floor is not None and _matches(floor, parse_range(required))
    except InvalidRangeError as exc:
        logger.error("Cannot compare %r with %r: %s", installed, required, exc)
        return False
