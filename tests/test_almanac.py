"""Tests for ruleweave.engine.almanac — per-record fact resolution."""

from __future__ import annotations

from typing import Any

import pytest

from ruleweave.engine.almanac import Almanac
from ruleweave.engine.registry import NotRegisteredError, PluginRegistry
from ruleweave.engine.types import FactDefn, Plugin


def _counting_registry() -> tuple[PluginRegistry, list[dict[str, Any]]]:
    calls: list[dict[str, Any]] = []

    async def _counted(params: dict[str, Any], almanac: Almanac) -> int:
        calls.append(params)
        return len(calls)

    reg = PluginRegistry()
    reg.register(Plugin(name="count", version="1", facts=(FactDefn(name="counted", fn=_counted),)))
    return reg, calls


class TestFactValue:
    @pytest.mark.asyncio()
    async def test_base_fact(self) -> None:
        almanac = Almanac(PluginRegistry(), {"fileData": {"fileName": "a.js"}})
        assert await almanac.fact_value("fileData") == {"fileName": "a.js"}

    @pytest.mark.asyncio()
    async def test_runtime_fact_shadows_base(self) -> None:
        almanac = Almanac(PluginRegistry(), {"x": 1})
        almanac.add_runtime_fact("x", 2)
        assert await almanac.fact_value("x") == 2
        assert almanac.runtime_fact("x") == 2
        assert almanac.runtime_fact("missing", "default") == "default"

    @pytest.mark.asyncio()
    async def test_registry_fact_memoized_per_params(self) -> None:
        reg, calls = _counting_registry()
        almanac = Almanac(reg)

        first = await almanac.fact_value("counted", {"a": 1})
        again = await almanac.fact_value("counted", {"a": 1})
        other = await almanac.fact_value("counted", {"a": 2})

        assert first == again == 1
        assert other == 2
        assert len(calls) == 2

    @pytest.mark.asyncio()
    async def test_param_order_does_not_matter(self) -> None:
        reg, calls = _counting_registry()
        almanac = Almanac(reg)
        await almanac.fact_value("counted", {"a": 1, "b": 2})
        await almanac.fact_value("counted", {"b": 2, "a": 1})
        assert len(calls) == 1

    @pytest.mark.asyncio()
    async def test_memo_is_per_almanac(self) -> None:
        reg, calls = _counting_registry()
        await Almanac(reg).fact_value("counted")
        await Almanac(reg).fact_value("counted")
        assert len(calls) == 2

    @pytest.mark.asyncio()
    async def test_unknown_fact_raises(self) -> None:
        almanac = Almanac(PluginRegistry())
        with pytest.raises(NotRegisteredError):
            await almanac.fact_value("nothing")

    def test_has_fact(self) -> None:
        reg, _ = _counting_registry()
        almanac = Almanac(reg, {"base": 1})
        almanac.add_runtime_fact("runtime", 2)
        assert almanac.has_fact("base")
        assert almanac.has_fact("runtime")
        assert almanac.has_fact("counted")
        assert not almanac.has_fact("other")
