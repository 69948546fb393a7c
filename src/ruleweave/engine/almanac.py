"""Per-record fact-resolution cache handed to every fact invocation."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ruleweave.engine.registry import PluginRegistry

logger = logging.getLogger(__name__)


def _params_key(params: dict[str, Any] | None) -> str:
    if not params:
        return ""
    try:
        return json.dumps(params, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return repr(sorted(params.items(), key=lambda kv: kv[0]))


class Almanac:
    """Resolves fact values for one evaluation run.

    Lookup order for :meth:`fact_value`:

    1. runtime facts registered with :meth:`add_runtime_fact`;
    2. base facts supplied at construction (``fileData``,
       ``globalFileMetadata``, ``dependencyData`` ...);
    3. registry facts, memoized by ``(name, params)``.

    The almanac is owned by the caller and lives for exactly one file
    record; nothing is shared between records except what the caller
    passes in as base facts.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        base_facts: dict[str, Any] | None = None,
    ) -> None:
        self._registry = registry
        self._base: dict[str, Any] = dict(base_facts or {})
        self._runtime: dict[str, Any] = {}
        self._memo: dict[tuple[str, str], Any] = {}

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    def has_fact(self, name: str) -> bool:
        return name in self._runtime or name in self._base or self._registry.has_fact(name)

    def add_runtime_fact(self, name: str, value: Any) -> None:
        """Store a derived value so later conditions can reference it by *name*."""
        logger.debug("Adding runtime fact '%s'", name)
        self._runtime[name] = value

    def runtime_fact(self, name: str, default: Any = None) -> Any:
        """Return a runtime fact without triggering registry evaluation."""
        return self._runtime.get(name, default)

    async def fact_value(self, name: str, params: dict[str, Any] | None = None) -> Any:
        """Resolve fact *name*.

        Raises
        ------
        NotRegisteredError
            If *name* is neither a runtime fact, a base fact nor registered.
        """
        if name in self._runtime:
            return self._runtime[name]
        if name in self._base:
            return self._base[name]

        key = (name, _params_key(params))
        if key in self._memo:
            return self._memo[key]

        value = await self._registry.invoke_fact(name, params, self)
        self._memo[key] = value
        return value
