"""
模型流式输出消费模块

drain_stream 逐帧读取模型输出流，把非空的 assistant 内容转发给观察者，
直到流结束或出错；无论以何种方式退出，读取端都会且只会被关闭一次。

设计约束:
    - 流正常结束（EndOfStream）不是错误
    - 读取出错时记录日志并停止，不向上抛出（展示/日志用途，不在关键路径上）
    - 无法识别的帧直接跳过
    - 观察者返回 False 或抛出异常时提前停止
"""

import logging
from typing import Any, Callable, Optional

from langchain_core.messages import AIMessage

from core.callbacks import ChatModelCallbackOutput
from core.stream import EndOfStream, StreamClosedError, StreamReader

logger = logging.getLogger(__name__)


def message_text(content: Any) -> str:
    """提取消息内容中的文本（兼容字符串与内容块列表）"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return ""


def assistant_content(frame: Any) -> str:
    """
    识别 assistant 内容帧

    Args:
        frame: ChatModelCallbackOutput 或直接的消息对象

    Returns:
        str: assistant 文本内容，非 assistant 帧返回空字符串
    """
    message = frame.message if isinstance(frame, ChatModelCallbackOutput) else frame
    if not isinstance(message, AIMessage):
        return ""
    return message_text(message.content)


async def drain_stream(
    reader: StreamReader[Any],
    on_content: Callable[[str], Optional[bool]],
    *,
    name: str = "",
) -> int:
    """
    消费流直到结束

    Args:
        reader: 流读取端（由本函数负责关闭）
        on_content: 观察者，接收非空的 assistant 内容；返回 False 时提前停止
        name: 流名称，仅用于日志

    Returns:
        int: 转发给观察者的帧数
    """
    forwarded = 0
    try:
        while True:
            try:
                frame = await reader.recv()
            except EndOfStream:
                break
            except StreamClosedError:
                logger.debug(f"流 {name} 已被关闭，停止读取")
                break
            except Exception as e:
                logger.error(f"[ERROR] failed to recv from stream {name}: {e!r}")
                break

            content = assistant_content(frame)
            if not content:
                continue
            try:
                keep_going = on_content(content)
            except Exception as e:
                logger.error(f"流 {name} 的观察者处理失败，停止读取: {e!r}", exc_info=True)
                break
            forwarded += 1
            if keep_going is False:
                break
    finally:
        await reader.aclose()
    return forwarded


__all__ = [
    "message_text",
    "assistant_content",
    "drain_stream",
]
