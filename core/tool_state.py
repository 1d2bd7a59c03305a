"""
工具执行状态上下文模块

在 OnStart callback、工具执行（SafeTool）与 OnEnd callback 之间传递执行状态。

作用域（scope）即 contextvars.Context：
- set_tool_state 不修改传入的 Context，而是复制出一个新的 Context 并在其中绑定状态；
- 状态以引用方式保存，工具内部对 success 的修改在 OnEnd 读取时可见；
- 每次工具调用都新建状态对象，不同调用之间互不共享，因此无需加锁。

使用示例:
    from contextvars import copy_context
    from core.tool_state import new_tool_state, set_tool_state, get_tool_state

    state = new_tool_state()
    ctx = set_tool_state(copy_context(), state)
    assert get_tool_state(ctx) is state
"""

from contextvars import Context, ContextVar, copy_context
from dataclasses import dataclass
from typing import Optional


@dataclass
class ToolExecutionState:
    """
    单次工具调用的执行结果标记

    Attributes:
        success: 工具是否调用成功，初始为 False，由 SafeTool 在执行后设置
    """

    success: bool = False


# 上下文变量定义（线程/协程安全）
_tool_state_var: ContextVar[Optional[ToolExecutionState]] = ContextVar("tool_execution_state", default=None)


def new_tool_state() -> ToolExecutionState:
    """为一次工具调用创建新的执行状态（success=False）"""
    return ToolExecutionState(success=False)


def set_tool_state(ctx: Optional[Context], state: ToolExecutionState) -> Context:
    """
    将工具执行状态绑定到派生的 Context 中

    Args:
        ctx: 原始 Context，为 None 时使用当前 Context
        state: 工具执行状态

    Returns:
        Context: 绑定了 state 的新 Context（原 Context 不变）
    """
    base = ctx if ctx is not None else copy_context()
    derived = base.copy()
    derived.run(_tool_state_var.set, state)
    return derived


def get_tool_state(ctx: Optional[Context] = None) -> Optional[ToolExecutionState]:
    """
    从 Context 中获取工具执行状态

    Args:
        ctx: 要读取的 Context，为 None 时读取当前 Context

    Returns:
        Optional[ToolExecutionState]: 未绑定或类型不符时返回 None
    """
    if ctx is None:
        value = _tool_state_var.get()
    else:
        value = ctx.get(_tool_state_var)
    if not isinstance(value, ToolExecutionState):
        return None
    return value


__all__ = [
    "ToolExecutionState",
    "new_tool_state",
    "set_tool_state",
    "get_tool_state",
]
