"""Plugin registry: name-keyed facts and operators with per-plugin error isolation."""

from __future__ import annotations

import inspect
import logging
import threading
from typing import TYPE_CHECKING, Any

from ruleweave.engine.types import FactDefn, OperatorDefn, Plugin, PluginDiagnostic

if TYPE_CHECKING:
    from ruleweave.engine.almanac import Almanac

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class NotRegisteredError(KeyError):
    """Raised when a fact or operator name has no registered implementation."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} '{name}' is not registered")
        self.kind = kind
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class PluginError(Exception):
    """An exception raised inside a plugin's fact or operator."""

    def __init__(self, plugin_name: str, member: str, cause: BaseException) -> None:
        super().__init__(f"{plugin_name}.{member}: {cause}")
        self.plugin_name = plugin_name
        self.member = member
        self.cause = cause


def default_error_handler(exc: BaseException) -> PluginDiagnostic:
    """Diagnostic used when a plugin does not supply its own ``on_error``."""
    cause = exc.cause if isinstance(exc, PluginError) else exc
    details: dict[str, Any] = {"error_type": type(cause).__name__}
    if isinstance(exc, PluginError):
        details["plugin"] = exc.plugin_name
        details["member"] = exc.member
    return PluginDiagnostic(message=str(cause), level="warning", details=details)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class PluginRegistry:
    """Catalog of facts and operators contributed by plugins.

    Registering a name that already exists overwrites it (last registration
    wins) so archetype-specific plugins can override builtin ones.  Every
    invocation is wrapped: an exception raised by a fact or operator is
    handed to the owning plugin's ``on_error``, recorded as a warning in
    :attr:`diagnostics`, and replaced by a neutral value (``None`` for
    facts, ``False`` for operators).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._plugins: dict[str, Plugin] = {}
        self._facts: dict[str, tuple[FactDefn, str]] = {}
        self._operators: dict[str, tuple[OperatorDefn, str]] = {}
        self.diagnostics: list[PluginDiagnostic] = []

    # -- registration -------------------------------------------------------

    def register(self, plugin: Plugin) -> None:
        """Add *plugin*'s facts and operators to the catalog.

        Raises
        ------
        ValueError
            If the plugin has no name or no version.
        """
        if not getattr(plugin, "name", None) or not getattr(plugin, "version", None):
            msg = "Invalid plugin format: name and version are required"
            raise ValueError(msg)

        with self._lock:
            previous = self._plugins.get(plugin.name)
            if previous is not None:
                logger.warning(
                    "Plugin '%s' registered again (was %s, now %s)",
                    plugin.name,
                    previous.version,
                    plugin.version,
                )
                self._drop_members(plugin.name)
            self._plugins[plugin.name] = plugin

            for fact in plugin.facts:
                existing = self._facts.get(fact.name)
                if existing is not None:
                    logger.warning(
                        "Fact '%s' from plugin '%s' overrides plugin '%s'",
                        fact.name,
                        plugin.name,
                        existing[1],
                    )
                self._facts[fact.name] = (fact, plugin.name)

            for operator in plugin.operators:
                existing_op = self._operators.get(operator.name)
                if existing_op is not None:
                    logger.warning(
                        "Operator '%s' from plugin '%s' overrides plugin '%s'",
                        operator.name,
                        plugin.name,
                        existing_op[1],
                    )
                self._operators[operator.name] = (operator, plugin.name)

        logger.debug(
            "Registered plugin %s@%s (%d facts, %d operators)",
            plugin.name,
            plugin.version,
            len(plugin.facts),
            len(plugin.operators),
        )

    def _drop_members(self, plugin_name: str) -> None:
        self._facts = {k: v for k, v in self._facts.items() if v[1] != plugin_name}
        self._operators = {k: v for k, v in self._operators.items() if v[1] != plugin_name}

    def reset(self) -> None:
        """Remove every plugin, fact, operator and recorded diagnostic."""
        with self._lock:
            self._plugins.clear()
            self._facts.clear()
            self._operators.clear()
            self.diagnostics.clear()

    # -- introspection ------------------------------------------------------

    @property
    def plugins(self) -> list[Plugin]:
        return list(self._plugins.values())

    def get_plugin(self, name: str) -> Plugin | None:
        return self._plugins.get(name)

    def fact_names(self) -> list[str]:
        return sorted(self._facts)

    def operator_names(self) -> list[str]:
        return sorted(self._operators)

    def has_fact(self, name: str) -> bool:
        return name in self._facts

    def has_operator(self, name: str) -> bool:
        return name in self._operators

    def get_fact(self, name: str) -> FactDefn:
        entry = self._facts.get(name)
        if entry is None:
            raise NotRegisteredError("fact", name)
        return entry[0]

    def get_operator(self, name: str) -> OperatorDefn:
        entry = self._operators.get(name)
        if entry is None:
            raise NotRegisteredError("operator", name)
        return entry[0]

    def owner_of_fact(self, name: str) -> str | None:
        entry = self._facts.get(name)
        return entry[1] if entry else None

    def owner_of_operator(self, name: str) -> str | None:
        entry = self._operators.get(name)
        return entry[1] if entry else None

    def clear_diagnostics(self) -> None:
        self.diagnostics.clear()

    # -- invocation ---------------------------------------------------------

    async def invoke_fact(
        self,
        name: str,
        params: dict[str, Any] | None,
        almanac: Almanac,
    ) -> Any:
        """Run fact *name*; plugin exceptions become diagnostics and ``None``."""
        entry = self._facts.get(name)
        if entry is None:
            raise NotRegisteredError("fact", name)
        fact, owner = entry
        try:
            return await fact.fn(params or {}, almanac)
        except Exception as exc:
            self._handle_failure(owner, f"fact:{name}", exc)
            return None

    async def invoke_operator(self, name: str, fact_value: Any, compare_value: Any) -> bool:
        """Run operator *name*; plugin exceptions become diagnostics and ``False``."""
        entry = self._operators.get(name)
        if entry is None:
            raise NotRegisteredError("operator", name)
        operator, owner = entry
        try:
            result = operator.fn(fact_value, compare_value)
            if inspect.isawaitable(result):
                result = await result
            return bool(result)
        except Exception as exc:
            self._handle_failure(owner, f"operator:{name}", exc)
            return False

    def _handle_failure(self, plugin_name: str, member: str, exc: Exception) -> None:
        error = PluginError(plugin_name, member, exc)
        plugin = self._plugins.get(plugin_name)
        handler = plugin.on_error if plugin is not None and plugin.on_error else None

        diagnostic: PluginDiagnostic
        if handler is None:
            diagnostic = default_error_handler(error)
        else:
            try:
                diagnostic = handler(error)
            except Exception:
                logger.exception("Error handler of plugin '%s' failed", plugin_name)
                diagnostic = default_error_handler(error)

        # Plugin failures are never fatal for the run.
        details = {"plugin": plugin_name, "member": member, **diagnostic.details}
        demoted = PluginDiagnostic(message=diagnostic.message, level="warning", details=details)
        self.diagnostics.append(demoted)
        logger.warning("Plugin '%s' failed in %s: %s", plugin_name, member, demoted.message)
