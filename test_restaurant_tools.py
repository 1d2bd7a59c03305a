"""
测试餐厅/菜品查询工具与故障注入
"""

import asyncio
import json
import random

import pytest

from config.settings import reset_settings_cache
from config.tool_config import ToolConfig
from core.tool_errors import ToolArgumentsError, TransientToolError
from core.tool_state import new_tool_state, set_tool_state
from Tools.fault_injection import FaultInjector
from Tools.restaurant_tools import build_fault_injector, get_dish_tool, get_restaurant_tool


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    monkeypatch.delenv("FAULT_PROBABILITY", raising=False)
    monkeypatch.delenv("FAULT_SEED", raising=False)
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def tool_config(tmp_path):
    path = tmp_path / "tool.yaml"
    path.write_text(
        "global_defaults:\n"
        "  timeout: 60\n"
        "  fault_probability: 0\n"
        "tools:\n"
        "  query_restaurants:\n"
        "    timeout: 5\n"
        "  query_dishes:\n"
        "    timeout: 5\n",
        encoding="utf-8",
    )
    return ToolConfig(path)


def invoke(tool, arguments_json: str):
    state = new_tool_state()

    async def main():
        ctx = set_tool_state(None, state)
        return await asyncio.get_running_loop().create_task(tool.ainvoke(arguments_json), context=ctx)

    return asyncio.run(main()), state


def test_restaurants_sorted_by_score(tool_config):
    out, state = invoke(get_restaurant_tool(tool_config=tool_config), '{"location": "北京", "topn": 2}')

    rests = json.loads(out)
    assert [r["id"] for r in rests] == ["1002", "1001"]
    assert state.success is True


def test_restaurant_topn_defaults_when_missing_or_not_positive(tool_config):
    tool = get_restaurant_tool(tool_config=tool_config)

    missing, _ = invoke(tool, '{"location": "北京"}')
    zero, _ = invoke(tool, '{"location": "北京", "topn": 0}')

    assert len(json.loads(missing)) == 3
    assert json.loads(zero) == json.loads(missing)


def test_unknown_location_returns_empty_list(tool_config):
    out, state = invoke(get_restaurant_tool(tool_config=tool_config), '{"location": "广州"}')
    assert json.loads(out) == []
    assert state.success is True


def test_dishes_sorted_by_score(tool_config):
    out, state = invoke(get_dish_tool(tool_config=tool_config), '{"restaurant_id": "2001"}')

    assert [d["name"] for d in json.loads(out)] == ["红烧肉", "油爆虾"]
    assert state.success is True


def test_unknown_restaurant_is_downgraded_to_text(tool_config):
    out, state = invoke(get_dish_tool(tool_config=tool_config), '{"restaurant_id": "9999"}')

    assert out == "restaurant 9999 not found (code=not_found)"
    assert state.success is False


def test_missing_required_argument_is_returned_as_text(tool_config):
    out, state = invoke(get_restaurant_tool(tool_config=tool_config), '{"topn": 2}')

    assert "location" in out
    assert "(code=invalid_params)" in out
    assert state.success is False


def test_malformed_arguments_are_an_argument_error(tool_config):
    with pytest.raises(ToolArgumentsError):
        invoke(get_restaurant_tool(tool_config=tool_config), '{"location": ')


def test_tools_use_configured_timeout(tool_config):
    assert get_restaurant_tool(tool_config=tool_config).timeout == 5.0
    assert get_dish_tool(tool_config=tool_config).timeout == 5.0


def test_injected_fault_is_reported_as_retryable_text(tool_config):
    injector = FaultInjector(probability=1.0)

    out, state = invoke(get_restaurant_tool(fault_injector=injector, tool_config=tool_config), '{"location": "北京"}')

    payload = json.loads(out)
    assert payload["retry"] == "true"
    assert "restaurant service is temporarily unavailable" in payload["message"]
    assert state.success is False


def test_fault_injector_with_seed_is_reproducible():
    def outcomes(seed):
        injector = FaultInjector(probability=0.5, seed=seed)
        result = []
        for _ in range(20):
            try:
                injector.maybe_fail("restaurant")
                result.append(True)
            except TransientToolError:
                result.append(False)
        return result

    first = outcomes(7)
    assert first == outcomes(7)
    assert True in first and False in first


def test_fault_injector_bounds():
    FaultInjector(probability=0.0).maybe_fail("restaurant")
    assert FaultInjector(probability=0.0).enabled is False

    with pytest.raises(TransientToolError):
        FaultInjector(probability=1.0, rng=random.Random(1)).maybe_fail("restaurant")

    with pytest.raises(ValueError):
        FaultInjector(probability=1.5)


def test_build_fault_injector_disabled_by_default(tool_config):
    assert build_fault_injector("query_restaurants", tool_config) is None


def test_build_fault_injector_reads_environment(monkeypatch, tool_config):
    monkeypatch.setenv("FAULT_PROBABILITY", "0.25")
    monkeypatch.setenv("FAULT_SEED", "3")
    reset_settings_cache()

    injector = build_fault_injector("query_restaurants", tool_config)

    assert injector is not None
    assert injector.probability == 0.25


def test_build_fault_injector_reads_tool_yaml(tmp_path):
    path = tmp_path / "tool.yaml"
    path.write_text("tools:\n  query_restaurants:\n    fault_probability: 0.4\n", encoding="utf-8")

    injector = build_fault_injector("query_restaurants", ToolConfig(path))

    assert injector is not None
    assert injector.probability == 0.4
