"""
Core 模块

提供工具执行状态传递、工具安全封装、流式输出消费与日志回调。

主要组件:
    - ToolExecutionState / set_tool_state / get_tool_state: 在回调与工具执行之间传递执行状态
    - SafeTool: 把工具执行失败转换为模型可见的错误文本
    - StreamReader / pipe: 可关闭、可复制的有序流
    - drain_stream: 消费模型输出流并转发 assistant 内容
    - LoggerCallback: 工具调用与模型输出的日志回调

使用示例:
    from core import LoggerCallback, SafeTool, run_tool_with_callbacks

    callback = LoggerCallback()
    result = await run_tool_with_callbacks(SafeTool(my_tool), '{"q": "x"}', [callback])
"""

from core.callbacks import (
    CallbackHandler,
    ChatModelCallbackOutput,
    Component,
    RunInfo,
    on_end_with_stream_output,
    on_start_with_stream_input,
    run_tool_with_callbacks,
)
from core.logger_callback import LoggerCallback, ToolCallOutcome
from core.safe_tool import InvokableTool, JsonArgsTool, SafeTool, ToolInfo
from core.stream import EndOfStream, StreamClosedError, StreamReader, StreamWriter, pipe
from core.stream_drain import drain_stream
from core.tool_errors import ToolArgumentsError, ToolError, TransientToolError
from core.tool_state import ToolExecutionState, get_tool_state, new_tool_state, set_tool_state

__all__ = [
    "CallbackHandler",
    "ChatModelCallbackOutput",
    "Component",
    "RunInfo",
    "on_end_with_stream_output",
    "on_start_with_stream_input",
    "run_tool_with_callbacks",
    "LoggerCallback",
    "ToolCallOutcome",
    "InvokableTool",
    "JsonArgsTool",
    "SafeTool",
    "ToolInfo",
    "EndOfStream",
    "StreamClosedError",
    "StreamReader",
    "StreamWriter",
    "pipe",
    "drain_stream",
    "ToolArgumentsError",
    "ToolError",
    "TransientToolError",
    "ToolExecutionState",
    "get_tool_state",
    "new_tool_state",
    "set_tool_state",
]
