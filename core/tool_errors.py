"""
工具错误类型定义模块。

提供 ToolError 作为工具层统一异常类型，并按处理方式区分两类失败：
- ToolArgumentsError：参数无法解码（JSON 格式错误），属于调用方误用，向上抛出；
- TransientToolError：工具执行过程中的临时性失败，由 SafeTool 降级为文本交给模型。

设计约束：
- ToolError 的 message 必须可读且非空；
- cause 仅用于日志记录，不应直接暴露给 Agent。
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional


class ToolError(Exception):
    """
    工具层统一异常类型。

    重要不变量（invariants）：
    - message 为非空字符串；
    - details 始终为字典对象（无信息时为空字典）。
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        """
        初始化 ToolError。

        Args:
            message: 面向 Agent 的错误说明（简明可读）
            code: 稳定的机器可识别错误码（用于分支逻辑）
            details: 结构化附加信息（用于日志或排查）
            cause: 原始异常（仅用于日志，不应直接返回给 Agent）
        """
        safe_message = message.strip() if isinstance(message, str) else ""
        if not safe_message:
            safe_message = "Unknown tool error"
        super().__init__(safe_message)
        self.message = safe_message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """
        转换为可序列化的错误结构（不包含 cause）。
        """
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
            "error_type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        return f"{self.message} (code={self.code})" if self.code else self.message


class ToolArgumentsError(ToolError):
    """
    工具参数无法解码（JSON 格式错误）。字段校验失败不属于此类，按 code="invalid_params" 的普通失败处理。

    SafeTool 不会降级此类错误：它表示调用方传入了无法理解的参数，
    而不是工具本身执行失败，因此会原样抛给上层，且不修改执行状态。
    """

    def __init__(self, message: str, *, tool_name: str = "", cause: Optional[Exception] = None) -> None:
        super().__init__(
            message,
            code="invalid_arguments",
            details={"tool_name": tool_name} if tool_name else None,
            cause=cause,
        )


class TransientToolError(ToolError):
    """
    可重试的临时性失败。

    __str__ 返回 JSON 文本 {"error", "message", "retry": "true"}，
    被 SafeTool 降级后模型能直接看到"可以重试"的提示。
    """

    def __init__(
        self,
        error: str = "service temporarily unavailable",
        message: str = "The service is temporarily unavailable. Please retry later.",
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="transient", details=details)
        self.error = error

    def to_payload(self) -> Dict[str, str]:
        """模型可见的错误结构（retry 按字符串 "true" 输出）"""
        return {
            "error": self.error,
            "message": self.message,
            "retry": "true",
        }

    def __str__(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)


__all__ = [
    "ToolError",
    "ToolArgumentsError",
    "TransientToolError",
]
