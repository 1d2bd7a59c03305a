"""
组件回调模块

定义组件生命周期回调的注册点：工具调用前后、出错时，以及流式输入/输出的开始与结束。

每个回调接收并返回 contextvars.Context：on_start 返回的 Context 会被用于实际执行工具，
同一个 Context 随后传给 on_end，因此在 on_start 中绑定的值可以在 on_end 中读取。

使用示例:
    from core.callbacks import run_tool_with_callbacks

    result = await run_tool_with_callbacks(safe_tool, '{"location": "beijing"}', [LoggerCallback()])
"""

import asyncio
import logging
from contextvars import Context, copy_context
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from langchain_core.messages import BaseMessage

from core.safe_tool import InvokableTool
from core.stream import StreamReader

logger = logging.getLogger(__name__)


class Component(str, Enum):
    """组件类型"""

    TOOL = "Tool"
    CHAT_MODEL = "ChatModel"
    TOOLS_NODE = "ToolsNode"
    AGENT = "Agent"


@dataclass(frozen=True)
class RunInfo:
    """
    回调触发时的组件信息

    Attributes:
        component: 组件类型
        type: 组件实现类型（如工具类名、模型类名）
        name: 组件名称（如工具名）
    """

    component: Component
    type: str
    name: str


@dataclass(frozen=True)
class ToolCallbackInput:
    arguments_json: str


@dataclass(frozen=True)
class ToolCallbackOutput:
    response: str


@dataclass(frozen=True)
class ChatModelCallbackOutput:
    """模型流式输出中的一帧"""

    message: Optional[BaseMessage]


class CallbackHandler:
    """
    回调处理器基类

    所有回调默认不做任何处理并原样返回 Context，子类按需覆盖。
    """

    async def on_start(self, ctx: Context, info: RunInfo, input: Any) -> Context:
        return ctx

    async def on_end(self, ctx: Context, info: RunInfo, output: Any) -> Context:
        return ctx

    async def on_error(self, ctx: Context, info: RunInfo, error: BaseException) -> Context:
        return ctx

    async def on_start_with_stream_input(self, ctx: Context, info: RunInfo, input: StreamReader[Any]) -> Context:
        # 处理器拿到的是自己的副本，必须负责关闭
        await input.aclose()
        return ctx

    async def on_end_with_stream_output(self, ctx: Context, info: RunInfo, output: StreamReader[Any]) -> Context:
        await output.aclose()
        return ctx


def tool_run_info(tool: InvokableTool) -> RunInfo:
    """根据工具生成 RunInfo，SafeTool 取被封装工具的类名"""
    inner = getattr(tool, "tool", tool)
    return RunInfo(component=Component.TOOL, type=type(inner).__name__, name=tool.info().name)


async def run_tool_with_callbacks(
    tool: InvokableTool,
    arguments_json: str,
    handlers: Sequence[CallbackHandler],
    *,
    ctx: Optional[Context] = None,
    info: Optional[RunInfo] = None,
) -> str:
    """
    带回调地执行一次工具调用

    流程：on_start（依次传递 Context）→ 在该 Context 中执行工具 → on_end；
    工具抛出异常时调用 on_error 后重新抛出。

    Args:
        tool: 要执行的工具（通常为 SafeTool）
        arguments_json: JSON 格式的参数
        handlers: 回调处理器列表
        ctx: 起始 Context，为 None 时复制当前 Context
        info: 组件信息，为 None 时由工具生成

    Returns:
        str: 工具输出
    """
    info = info or tool_run_info(tool)
    ctx = ctx if ctx is not None else copy_context()

    for handler in handlers:
        ctx = await handler.on_start(ctx, info, ToolCallbackInput(arguments_json))

    # 工具在 on_start 返回的 Context 中执行，执行状态通过该 Context 共享
    task = asyncio.get_running_loop().create_task(tool.ainvoke(arguments_json), context=ctx)
    try:
        response = await task
    except Exception as e:
        for handler in handlers:
            ctx = await handler.on_error(ctx, info, e)
        raise

    for handler in handlers:
        ctx = await handler.on_end(ctx, info, ToolCallbackOutput(response))
    return response


async def on_start_with_stream_input(
    stream: StreamReader[Any],
    info: RunInfo,
    handlers: Sequence[CallbackHandler],
    ctx: Optional[Context] = None,
) -> Tuple[Context, StreamReader[Any]]:
    """
    把流式输入分发给回调处理器

    每个处理器获得一个独立副本，返回值中的读取端留给调用方继续使用。
    """
    return await _fan_out(stream, info, handlers, ctx, input_side=True)


async def on_end_with_stream_output(
    stream: StreamReader[Any],
    info: RunInfo,
    handlers: Sequence[CallbackHandler],
    ctx: Optional[Context] = None,
) -> Tuple[Context, StreamReader[Any]]:
    """
    把流式输出分发给回调处理器

    每个处理器获得一个独立副本，返回值中的读取端留给调用方继续使用（如 tool call 检测）。
    """
    return await _fan_out(stream, info, handlers, ctx, input_side=False)


async def _fan_out(
    stream: StreamReader[Any],
    info: RunInfo,
    handlers: Sequence[CallbackHandler],
    ctx: Optional[Context],
    input_side: bool,
) -> Tuple[Context, StreamReader[Any]]:
    ctx = ctx if ctx is not None else copy_context()
    copies: List[StreamReader[Any]] = stream.copy(len(handlers) + 1)
    for handler, copied in zip(handlers, copies):
        if input_side:
            ctx = await handler.on_start_with_stream_input(ctx, info, copied)
        else:
            ctx = await handler.on_end_with_stream_output(ctx, info, copied)
    return ctx, copies[-1]


__all__ = [
    "Component",
    "RunInfo",
    "ToolCallbackInput",
    "ToolCallbackOutput",
    "ChatModelCallbackOutput",
    "CallbackHandler",
    "tool_run_info",
    "run_tool_with_callbacks",
    "on_start_with_stream_input",
    "on_end_with_stream_output",
]
