"""
日志回调模块

LoggerCallback 观察工具调用与模型流式输出：
- on_start（仅工具）：打印参数，创建 ToolExecutionState 并绑定到执行工具的 Context；
- on_end（仅工具）：打印结果，读取同一 Context 中的执行状态，报告成功/失败；
- on_error：打印组件信息与错误，不重试；
- on_end_with_stream_output：仅 ChatModel 的输出流交给后台任务消费，
  避免阻塞同时读取同一输出的 tool call 检测；其他组件直接关闭流。

单次工具调用的状态流转：NotStarted → Started → (Succeeded | Failed)，
状态缺失时报告为 indeterminate。

使用示例:
    callback = LoggerCallback()
    result = await run_tool_with_callbacks(tool, args, [callback])
    await callback.wait_drained()
"""

import asyncio
import logging
import time
from contextvars import Context, ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Set

from core.callbacks import CallbackHandler, Component, RunInfo, ToolCallbackInput, ToolCallbackOutput
from core.stream import StreamReader, log_task_exception
from core.stream_drain import drain_stream
from core.tool_log import record_tool_call
from core.tool_state import get_tool_state, new_tool_state, set_tool_state

logger = logging.getLogger(__name__)


class ToolCallOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class _CallStart:
    arguments_json: str
    started_at: float


_call_start_var: ContextVar[Optional[_CallStart]] = ContextVar("tool_call_start", default=None)


class LoggerCallback(CallbackHandler):
    """
    工具调用与模型输出的日志回调

    Args:
        content_sink: assistant 内容的输出函数，默认写入日志
        max_response_chars: 工具结果日志的最大长度，超出部分以 "..." 截断
    """

    def __init__(
        self,
        content_sink: Optional[Callable[[str], Any]] = None,
        max_response_chars: int = 200,
    ):
        self.content_sink = content_sink or self._log_content
        self.max_response_chars = max_response_chars
        self._drain_tasks: Set["asyncio.Task[int]"] = set()

    @staticmethod
    def _log_content(content: str) -> None:
        logger.info(f"assistant: {content}")

    async def on_start(self, ctx: Context, info: RunInfo, input: Any) -> Context:
        if info.component != Component.TOOL or not isinstance(input, ToolCallbackInput):
            return ctx

        logger.info(f"[TOOL] {info.name}: {input.arguments_json}")

        # 状态在工具执行时修改、在 on_end 中读取，每次调用单独创建
        ctx = set_tool_state(ctx, new_tool_state())
        ctx.run(_call_start_var.set, _CallStart(input.arguments_json, time.perf_counter()))
        return ctx

    async def on_end(self, ctx: Context, info: RunInfo, output: Any) -> Context:
        if info.component != Component.TOOL or not isinstance(output, ToolCallbackOutput):
            return ctx

        response = output.response
        if len(response) > self.max_response_chars:
            shown = response[: self.max_response_chars] + "..."
        else:
            shown = response
        logger.info(f"[TOOL] {info.name}: result = {shown}")

        outcome = self.outcome_of(ctx)
        if outcome == ToolCallOutcome.SUCCEEDED:
            logger.info(f"[TOOL] {info.name}: execution succeeded")
        elif outcome == ToolCallOutcome.FAILED:
            logger.warning(f"[TOOL] {info.name}: execution failed")
        else:
            logger.warning(f"[TOOL] {info.name}: execution state unavailable, outcome indeterminate")

        start = ctx.get(_call_start_var)
        record_tool_call(
            tool_name=info.name,
            arguments_json=start.arguments_json if start else None,
            response=response,
            outcome=outcome.value,
            duration=time.perf_counter() - start.started_at if start else None,
        )
        return ctx

    @staticmethod
    def outcome_of(ctx: Context) -> ToolCallOutcome:
        """根据 Context 中的执行状态判断调用结果"""
        state = get_tool_state(ctx)
        if state is None:
            return ToolCallOutcome.INDETERMINATE
        return ToolCallOutcome.SUCCEEDED if state.success else ToolCallOutcome.FAILED

    async def on_error(self, ctx: Context, info: RunInfo, error: BaseException) -> Context:
        logger.error(f"[ERROR] [{info.component.value}:{info.type}:{info.name}] {error}")
        return ctx

    async def on_start_with_stream_input(self, ctx: Context, info: RunInfo, input: StreamReader[Any]) -> Context:
        await input.aclose()
        return ctx

    async def on_end_with_stream_output(self, ctx: Context, info: RunInfo, output: StreamReader[Any]) -> Context:
        if info.component != Component.CHAT_MODEL:
            await output.aclose()
            return ctx

        # 独立任务消费，不阻塞同一输出上的 tool call 检测
        task = asyncio.get_running_loop().create_task(
            drain_stream(output, self.content_sink, name=info.name),
            name=f"drain-{info.name}",
        )
        self._drain_tasks.add(task)
        task.add_done_callback(self._drain_tasks.discard)
        task.add_done_callback(log_task_exception)
        return ctx

    @property
    def pending_drains(self) -> int:
        return len(self._drain_tasks)

    async def wait_drained(self, timeout: Optional[float] = None) -> None:
        """
        等待所有后台消费任务结束

        Args:
            timeout: 超时时间（秒），超时后取消剩余任务
        """
        while self._drain_tasks:
            tasks = list(self._drain_tasks)
            done, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                logger.warning(f"{len(pending)} 个流消费任务超时，已取消")
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                return


__all__ = [
    "LoggerCallback",
    "ToolCallOutcome",
]
