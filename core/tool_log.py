"""
工具调用记录模块

LoggerCallback 在每次工具调用结束时追加一条记录：
- 记录到当前上下文（get_tool_logs() 读取，线程/协程安全）；
- tool 日志器开启 enable_file 时，在后台线程中以 NDJSON 格式持久化到
  {log_dir}/{tool_name}/log_{整点时间戳}.json。
"""

import concurrent.futures
import json
import logging
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import UUID

from core.logger_config import get_logger_config

logger = logging.getLogger(__name__)

_call_logs: ContextVar[Optional[List[Dict[str, Any]]]] = ContextVar("tool_call_logs", default=None)

# 单线程写文件，保证同一文件的追加顺序
_persist_executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="tool-log")


def get_tool_logs() -> List[Dict[str, Any]]:
    """
    获取当前上下文下的所有工具调用记录

    Returns:
        List[Dict[str, Any]]: 记录列表（未记录过时为空列表）
    """
    logs = _call_logs.get()
    return list(logs) if logs else []


def clear_tool_logs() -> None:
    """清空当前上下文下的工具调用记录"""
    _call_logs.set(None)


def _json_default(obj: Any) -> Any:
    """
    JSON 序列化兜底函数

    - UUID -> str
    - 其他类型 -> repr(obj)
    """
    if isinstance(obj, UUID):
        return str(obj)
    return repr(obj)


def _persist_log_sync(log_entry: Dict[str, Any], log_dir: Path) -> None:
    """
    同步持久化日志到文件（在后台线程中执行）

    使用 NDJSON 格式（每行一个 JSON 对象），按小时分文件。
    """
    try:
        tool_log_dir = log_dir / log_entry.get("tool_name", "unknown")
        tool_log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = int(time.time())
        hour_timestamp = timestamp - (timestamp % 3600)
        log_file = tool_log_dir / f"log_{hour_timestamp}.json"

        log_line = json.dumps(log_entry, ensure_ascii=False, default=_json_default) + "\n"
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(log_line)
    except Exception as e:
        logger.error(f"持久化工具调用日志失败: {e}", exc_info=True)


def record_tool_call(
    tool_name: str,
    arguments_json: Optional[str],
    response: str,
    outcome: str,
    duration: Optional[float] = None,
) -> Dict[str, Any]:
    """
    追加一条工具调用记录

    Args:
        tool_name: 工具名称
        arguments_json: 调用参数（JSON 字符串）
        response: 工具返回内容（失败时为错误文本）
        outcome: 调用结果 "succeeded" | "failed" | "indeterminate"
        duration: 执行时长（秒）

    Returns:
        Dict[str, Any]: 新增的记录
    """
    log_entry: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "DEBUG" if outcome == "succeeded" else "WARNING",
        "logger": "tool",
        "tool_name": tool_name,
        "input_params": arguments_json,
        "output_result": response,
        "outcome": outcome,
        "is_success": outcome == "succeeded",
        "duration": round(duration, 6) if duration is not None else None,
    }

    logs = _call_logs.get()
    if logs is None:
        logs = []
        _call_logs.set(logs)
    logs.append(log_entry)

    config = get_logger_config("tool")
    if config["enabled"] and config["enable_file"]:
        try:
            _persist_executor.submit(_persist_log_sync, log_entry, Path(config["log_dir"]))
        except RuntimeError as e:
            # 解释器退出阶段线程池已关闭
            logger.error(f"调度日志持久化任务失败: {e}")

    return log_entry


__all__ = [
    "get_tool_logs",
    "clear_tool_logs",
    "record_tool_call",
]
