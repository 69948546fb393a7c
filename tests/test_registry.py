"""Tests for ruleweave.engine.registry — plugin catalog and error isolation."""

from __future__ import annotations

from typing import Any

import pytest

from ruleweave.engine.almanac import Almanac
from ruleweave.engine.registry import NotRegisteredError, PluginRegistry
from ruleweave.engine.types import FactDefn, OperatorDefn, Plugin, PluginDiagnostic


async def _const_fact(params: dict[str, Any], almanac: Almanac) -> Any:
    return params.get("value", 42)


async def _broken_fact(params: dict[str, Any], almanac: Almanac) -> Any:
    msg = "boom"
    raise RuntimeError(msg)


def _broken_operator(fact_value: Any, compare_value: Any) -> bool:
    msg = "operator exploded"
    raise ValueError(msg)


def _plugin(name: str = "demo", **kwargs: Any) -> Plugin:
    return Plugin(
        name=name,
        version="1.0.0",
        facts=kwargs.pop("facts", (FactDefn(name="answer", fn=_const_fact),)),
        operators=kwargs.pop(
            "operators",
            (OperatorDefn(name="equals", fn=lambda a, b: a == b),),
        ),
        **kwargs,
    )


class TestRegister:
    def test_register_adds_facts_and_operators(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin())
        assert reg.has_fact("answer")
        assert reg.has_operator("equals")
        assert reg.owner_of_fact("answer") == "demo"
        assert reg.fact_names() == ["answer"]
        assert reg.operator_names() == ["equals"]

    def test_register_rejects_missing_version(self) -> None:
        reg = PluginRegistry()
        with pytest.raises(ValueError, match="Invalid plugin format"):
            reg.register(Plugin(name="x", version=""))

    def test_register_rejects_missing_name(self) -> None:
        reg = PluginRegistry()
        with pytest.raises(ValueError, match="Invalid plugin format"):
            reg.register(Plugin(name="", version="1.0.0"))

    def test_last_registration_wins(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin("first"))
        reg.register(_plugin("second"))
        assert reg.owner_of_fact("answer") == "second"
        assert reg.owner_of_operator("equals") == "second"

    def test_reregistering_plugin_drops_old_members(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin("demo"))
        reg.register(_plugin("demo", facts=(FactDefn(name="other", fn=_const_fact),), operators=()))
        assert not reg.has_fact("answer")
        assert not reg.has_operator("equals")
        assert reg.has_fact("other")
        assert len(reg.plugins) == 1

    def test_reset(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin())
        reg.reset()
        assert reg.plugins == []
        assert reg.fact_names() == []

    def test_unknown_names_raise(self) -> None:
        reg = PluginRegistry()
        with pytest.raises(NotRegisteredError):
            reg.get_fact("missing")
        with pytest.raises(NotRegisteredError):
            reg.get_operator("missing")


class TestInvoke:
    @pytest.mark.asyncio()
    async def test_invoke_fact(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin())
        value = await reg.invoke_fact("answer", {"value": 7}, Almanac(reg))
        assert value == 7

    @pytest.mark.asyncio()
    async def test_invoke_unknown_fact_raises(self) -> None:
        reg = PluginRegistry()
        with pytest.raises(NotRegisteredError, match="fact 'nope' is not registered"):
            await reg.invoke_fact("nope", None, Almanac(reg))

    @pytest.mark.asyncio()
    async def test_async_operator_is_awaited(self) -> None:
        async def _gte(a: Any, b: Any) -> bool:
            return a >= b

        reg = PluginRegistry()
        reg.register(_plugin(operators=(OperatorDefn(name="gte", fn=_gte),)))
        assert await reg.invoke_operator("gte", 5, 3) is True
        assert await reg.invoke_operator("gte", 1, 3) is False


class TestIsolation:
    @pytest.mark.asyncio()
    async def test_failing_fact_becomes_warning(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin(facts=(FactDefn(name="broken", fn=_broken_fact),)))

        value = await reg.invoke_fact("broken", {}, Almanac(reg))

        assert value is None
        assert len(reg.diagnostics) == 1
        diagnostic = reg.diagnostics[0]
        assert diagnostic.level == "warning"
        assert diagnostic.message == "boom"
        assert diagnostic.details["plugin"] == "demo"
        assert diagnostic.details["member"] == "fact:broken"

    @pytest.mark.asyncio()
    async def test_failing_operator_returns_false(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin(operators=(OperatorDefn(name="bad", fn=_broken_operator),)))
        assert await reg.invoke_operator("bad", 1, 2) is False
        assert reg.diagnostics[0].details["error_type"] == "ValueError"

    @pytest.mark.asyncio()
    async def test_plugin_error_handler_level_is_demoted(self) -> None:
        def _on_error(exc: BaseException) -> PluginDiagnostic:
            return PluginDiagnostic(message=f"custom: {exc}", level="fatality")

        reg = PluginRegistry()
        reg.register(_plugin(facts=(FactDefn(name="broken", fn=_broken_fact),), on_error=_on_error))
        await reg.invoke_fact("broken", {}, Almanac(reg))

        assert reg.diagnostics[0].message.startswith("custom:")
        assert reg.diagnostics[0].level == "warning"

    @pytest.mark.asyncio()
    async def test_failing_error_handler_falls_back(self) -> None:
        def _on_error(exc: BaseException) -> PluginDiagnostic:
            msg = "handler broken"
            raise RuntimeError(msg)

        reg = PluginRegistry()
        reg.register(_plugin(facts=(FactDefn(name="broken", fn=_broken_fact),), on_error=_on_error))
        value = await reg.invoke_fact("broken", {}, Almanac(reg))

        assert value is None
        assert reg.diagnostics[0].message == "boom"

    @pytest.mark.asyncio()
    async def test_other_plugins_keep_working(self) -> None:
        reg = PluginRegistry()
        reg.register(_plugin("bad", facts=(FactDefn(name="broken", fn=_broken_fact),), operators=()))
        reg.register(_plugin("good"))

        await reg.invoke_fact("broken", {}, Almanac(reg))
        assert await reg.invoke_fact("answer", {}, Almanac(reg)) == 42
        assert await reg.invoke_operator("equals", 1, 1) is True
