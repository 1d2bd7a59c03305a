"""
工具抽象与安全封装模块

提供：
- ToolInfo: 工具元数据（名称、说明、参数 JSON Schema）
- InvokableTool: 可调用工具基类，参数与返回值都是字符串（与模型的 tool call 保持一致）
- JsonArgsTool: 使用 Pydantic 模型解析 JSON 参数的工具基类
- SafeTool: 工具装饰器，把执行失败转换为模型可见的错误文本，并记录执行状态

技术栈:
    - Python 3.12
    - Pydantic v2
    - LangChain (langchain_core.tools)

设计约束:
    - 工具执行失败不向上抛异常，错误信息作为正常返回值交给模型，由模型决定重试或换工具
    - 参数解析失败（ToolArgumentsError）属于调用方误用，原样抛出且不修改执行状态
    - 执行状态通过 core.tool_state 从当前 Context 获取，未绑定时静默跳过

使用示例:
    from core.safe_tool import SafeTool

    safe = SafeTool(MyTool(), timeout=30.0)
    result = await safe.ainvoke('{"location": "beijing"}')
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Type

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ValidationError

from core.tool_errors import ToolArgumentsError, ToolError
from core.tool_state import ToolExecutionState, get_tool_state

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolInfo:
    """
    工具元数据

    重要不变量：
    - name/description 为非空字符串；
    - parameters 为 JSON Schema 字典（无参数时为空字典）。
    """

    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)


class InvokableTool(ABC):
    """可调用工具基类"""

    @abstractmethod
    def info(self) -> ToolInfo:
        """返回工具元数据"""
        raise NotImplementedError("子类必须实现 info 方法")

    @abstractmethod
    async def ainvoke(self, arguments_json: str) -> str:
        """
        执行工具

        参数和返回值都是字符串，就像大模型 tool call 的参数与结果一样，
        序列化由工具自行处理。返回的内容会作为 ToolMessage 的 content 交给模型，
        因此应处理成模型容易理解的结构。

        Raises:
            ToolArgumentsError: 参数无法解析
            Exception: 工具执行失败
        """
        raise NotImplementedError("子类必须实现 ainvoke 方法")


class JsonArgsTool(InvokableTool):
    """
    基于 Pydantic 参数模型的工具基类

    子类声明 name / description / args_model，info() 从 args_model 生成参数 Schema。
    """

    name: ClassVar[str]
    description: ClassVar[str]
    args_model: ClassVar[Type[BaseModel]]

    def info(self) -> ToolInfo:
        return ToolInfo(
            name=self.name,
            description=self.description,
            parameters=self.args_model.model_json_schema(),
        )

    def parse_arguments(self, arguments_json: str) -> BaseModel:
        """
        解析 JSON 参数

        Raises:
            ToolArgumentsError: JSON 格式错误（无法解码）
            ToolError: JSON 合法但字段校验失败（缺少字段、类型不符），按执行失败处理
        """
        try:
            return self.args_model.model_validate_json(arguments_json or "{}")
        except ValidationError as e:
            if any(err["type"] == "json_invalid" for err in e.errors()):
                raise ToolArgumentsError(
                    f"工具 `{self.name}` 参数解析失败: {e}",
                    tool_name=self.name,
                    cause=e,
                ) from e
            raise ToolError(
                f"工具 `{self.name}` 参数校验失败: {e}",
                code="invalid_params",
                details={"tool_name": self.name},
                cause=e,
            ) from e


class SafeTool(InvokableTool):
    """
    工具安全封装

    当被封装的工具执行失败时，返回错误信息字符串而不是抛出异常，
    使模型能看到错误并决定下一步（重试或使用其他工具）。
    同时把是否成功写入当前 Context 中绑定的 ToolExecutionState。
    """

    def __init__(self, tool: InvokableTool, timeout: Optional[float] = None):
        """
        Args:
            tool: 被封装的工具
            timeout: 超时时间（秒），None 表示不限制；超时按执行失败处理
        """
        self.tool = tool
        self.timeout = timeout

    def info(self) -> ToolInfo:
        return self.tool.info()

    async def ainvoke(self, arguments_json: str, *, state: Optional[ToolExecutionState] = None) -> str:
        """
        执行被封装的工具

        Args:
            arguments_json: JSON 格式的参数
            state: 显式传入的执行状态，为 None 时从当前 Context 获取

        Returns:
            str: 工具输出；失败时为错误信息

        Raises:
            ToolArgumentsError: 参数解析失败（不降级，不修改状态）
        """
        tool_name = self.tool.info().name
        start = time.perf_counter()
        # timeout=None 时不设截止时间
        deadline = asyncio.timeout(self.timeout)
        try:
            async with deadline:
                out = await self.tool.ainvoke(arguments_json)
        except ToolArgumentsError:
            logger.warning(f"工具 `{tool_name}` 参数无效: {arguments_json!r}")
            raise
        except Exception as e:
            self._mark(state, False)
            if isinstance(e, TimeoutError) and deadline.expired():
                logger.warning(f"工具 `{tool_name}` 执行超时: {self.timeout}s")
                return str(ToolError(f"Timeout after {self.timeout}s", code="timeout"))
            duration = time.perf_counter() - start
            detail = e.to_dict() if isinstance(e, ToolError) else repr(e)
            logger.warning(f"工具 `{tool_name}` 执行失败（{duration:.3f}s），错误已转为文本返回: {detail}")
            return str(e) or repr(e)

        self._mark(state, True)
        logger.debug(f"工具 `{tool_name}` 执行成功（{time.perf_counter() - start:.3f}s）")
        return out

    @staticmethod
    def _mark(state: Optional[ToolExecutionState], success: bool) -> None:
        """设置执行状态：仅当工具没有抛出异常时认为成功"""
        if state is None:
            state = get_tool_state()
        if state is not None:
            state.success = success

    def as_langchain_tool(self) -> StructuredTool:
        """
        转换为 LangChain StructuredTool

        用于 chat_model.bind_tools()，调用时参数重新序列化为 JSON 后交给 ainvoke。
        """
        info = self.info()

        async def _arun(**kwargs: Any) -> str:
            return await self.ainvoke(json.dumps(kwargs, ensure_ascii=False))

        return StructuredTool.from_function(
            coroutine=_arun,
            name=info.name,
            description=info.description,
            args_schema=info.parameters or {"type": "object", "properties": {}},
        )


__all__ = [
    "ToolInfo",
    "InvokableTool",
    "JsonArgsTool",
    "SafeTool",
]
