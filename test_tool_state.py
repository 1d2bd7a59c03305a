"""
测试工具执行状态的绑定与读取
"""

import asyncio
from contextvars import copy_context

from core import tool_state
from core.tool_state import ToolExecutionState, get_tool_state, new_tool_state, set_tool_state


def test_new_state_starts_unsuccessful():
    state = new_tool_state()
    assert isinstance(state, ToolExecutionState)
    assert state.success is False


def test_lookup_without_bind_returns_none():
    assert get_tool_state(copy_context()) is None
    assert get_tool_state() is None


def test_bind_returns_derived_scope_and_keeps_original():
    base = copy_context()
    state = new_tool_state()

    derived = set_tool_state(base, state)

    assert get_tool_state(derived) is state
    assert get_tool_state(base) is None


def test_lookup_ignores_value_of_wrong_type():
    ctx = copy_context()
    ctx.run(tool_state._tool_state_var.set, {"success": True})

    assert get_tool_state(ctx) is None


def test_mutation_inside_scope_is_visible_to_reader():
    state = new_tool_state()
    ctx = set_tool_state(None, state)

    def mark():
        get_tool_state().success = True

    ctx.run(mark)

    assert get_tool_state(ctx).success is True


def test_states_are_isolated_between_scopes():
    base = copy_context()
    state_a, state_b = new_tool_state(), new_tool_state()
    ctx_a = set_tool_state(base, state_a)
    ctx_b = set_tool_state(base, state_b)

    get_tool_state(ctx_b).success = True

    assert get_tool_state(ctx_a) is state_a
    assert state_a.success is False
    assert state_b.success is True


def test_concurrent_tasks_see_their_own_state():
    async def worker(flag: bool) -> ToolExecutionState:
        await asyncio.sleep(0)
        get_tool_state().success = flag
        await asyncio.sleep(0)
        return get_tool_state()

    async def main():
        state_a, state_b = new_tool_state(), new_tool_state()
        loop = asyncio.get_running_loop()
        task_a = loop.create_task(worker(True), context=set_tool_state(None, state_a))
        task_b = loop.create_task(worker(False), context=set_tool_state(None, state_b))
        seen_a, seen_b = await asyncio.gather(task_a, task_b)
        return state_a, state_b, seen_a, seen_b

    state_a, state_b, seen_a, seen_b = asyncio.run(main())

    assert seen_a is state_a
    assert seen_b is state_b
    assert state_a.success is True
    assert state_b.success is False
