"""
ReAct Agent 示例

模型流式输出同时被三方读取：
- LoggerCallback：后台任务消费并打印 assistant 内容；
- stream_tool_call_checker：检测是否出现 tool call；
- collect_message：合并出完整的 AIMessage。
三者各自持有独立的流副本，互不阻塞。

循环由 LangGraph StateGraph 驱动（model 节点 ⇄ tools 节点），
工具通过 run_tool_with_callbacks 执行，LoggerCallback 报告每次调用的成功/失败。

技术栈:
    - Python 3.12
    - LangChain (langchain_core / langchain-openai)
    - LangGraph
    - python-dotenv

设计约束:
    - 必须配置对应提供商的 API Key 环境变量（默认 DEEPSEEK_API_KEY）

使用方法:
    python -m agents.react_agent --query "我在北京，给我推荐一些菜"
"""

import argparse
import asyncio
import json
import logging
from typing import Annotated, Any, Dict, List, Optional, Sequence, Tuple

from dotenv import load_dotenv
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AIMessageChunk,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
    message_chunk_to_message,
)
from langgraph.errors import GraphRecursionError
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from config.settings import get_settings
from core.callbacks import (
    CallbackHandler,
    ChatModelCallbackOutput,
    Component,
    RunInfo,
    on_end_with_stream_output,
    run_tool_with_callbacks,
)
from core.llm_config import load_llm_config
from core.llm_factory import LLMFactory
from core.logger_callback import LoggerCallback
from core.logger_config import configure_logging
from core.safe_tool import SafeTool
from core.stream import EndOfStream, StreamReader

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """# Character:
你是一个帮助用户推荐餐厅和菜品的助手，根据用户的需要，查询餐厅信息并推荐，查询餐厅的菜品并推荐。
如果工具返回的错误中包含 "retry": "true"，可以重新调用该工具。
"""

DEFAULT_QUERY = "我在北京，给我推荐一些菜，需要有口味辣一点的菜，至少推荐有 2 家餐厅"


def _has_tool_calls(frame: Any) -> bool:
    message = frame.message if isinstance(frame, ChatModelCallbackOutput) else frame
    if not isinstance(message, AIMessage):
        return False
    if message.tool_calls:
        return True
    return bool(getattr(message, "tool_call_chunks", None))


async def stream_tool_call_checker(reader: StreamReader[Any]) -> bool:
    """
    检测模型流式输出中是否包含 tool call

    读到第一个带 tool call 的帧即返回 True，流结束返回 False；
    读取错误向上抛出。读取端总会被关闭。
    """
    try:
        while True:
            try:
                frame = await reader.recv()
            except EndOfStream:
                return False
            if _has_tool_calls(frame):
                return True
    finally:
        await reader.aclose()


async def collect_message(reader: StreamReader[Any]) -> AIMessageChunk:
    """合并流中的所有 AIMessageChunk"""
    merged: Optional[AIMessageChunk] = None
    try:
        async for frame in reader:
            chunk = frame.message if isinstance(frame, ChatModelCallbackOutput) else frame
            if not isinstance(chunk, AIMessageChunk):
                continue
            merged = chunk if merged is None else merged + chunk
    finally:
        await reader.aclose()
    return merged if merged is not None else AIMessageChunk(content="")


class AgentState(TypedDict):
    messages: Annotated[List[BaseMessage], add_messages]
    has_tool_calls: bool


class ReactAgent:
    """
    基于 LangGraph 的 ReAct 循环：model →（tool call）→ tools → model …

    model 节点把流式输出分发给回调、tool call 检测与消息合并三方；
    tools 节点逐个通过 run_tool_with_callbacks 执行 tool call。

    Args:
        model: 聊天模型（需支持 bind_tools）
        tools: SafeTool 封装的工具
        callbacks: 回调处理器
        max_steps: 最大模型调用次数（换算为 LangGraph 的 recursion_limit）
    """

    def __init__(
        self,
        model: BaseChatModel,
        tools: Sequence[SafeTool],
        callbacks: Sequence[CallbackHandler] = (),
        max_steps: int = 12,
    ):
        self._tools: Dict[str, SafeTool] = {tool.info().name: tool for tool in tools}
        self._model_info = RunInfo(Component.CHAT_MODEL, type(model).__name__, "chat_model")
        self._model = model.bind_tools([tool.as_langchain_tool() for tool in tools])
        self.callbacks = list(callbacks)
        self.max_steps = max_steps
        self.graph = self._build_graph()

    def _build_graph(self):
        graph_builder = StateGraph(AgentState)
        graph_builder.add_node("model", self._model_node)
        graph_builder.add_node("tools", self._tools_node)
        graph_builder.add_edge(START, "model")
        graph_builder.add_conditional_edges("model", self._route, {"tools": "tools", END: END})
        graph_builder.add_edge("tools", "model")
        return graph_builder.compile()

    async def _model_step(self, messages: List[BaseMessage]) -> Tuple[bool, AIMessageChunk]:
        stream = StreamReader.from_async_iterable(self._model.astream(messages))
        _, own = await on_end_with_stream_output(stream, self._model_info, self.callbacks)
        checker_view, collector_view = own.copy(2)
        has_tool_calls, message = await asyncio.gather(
            stream_tool_call_checker(checker_view),
            collect_message(collector_view),
        )
        return has_tool_calls, message

    async def _model_node(self, state: AgentState) -> Dict[str, Any]:
        has_tool_calls, reply = await self._model_step(state["messages"])
        return {"messages": [message_chunk_to_message(reply)], "has_tool_calls": has_tool_calls}

    @staticmethod
    def _route(state: AgentState) -> str:
        last = state["messages"][-1]
        if state["has_tool_calls"] and isinstance(last, AIMessage) and last.tool_calls:
            return "tools"
        return END

    async def _call_tool(self, call: Dict[str, Any]) -> str:
        tool = self._tools.get(call["name"])
        if tool is None:
            return f"tool `{call['name']}` not found"
        arguments_json = json.dumps(call.get("args") or {}, ensure_ascii=False)
        return await run_tool_with_callbacks(tool, arguments_json, self.callbacks)

    async def _tools_node(self, state: AgentState) -> Dict[str, Any]:
        calls = state["messages"][-1].tool_calls
        logger.debug(f"执行 {len(calls)} 个 tool call")
        results = []
        for call in calls:
            response = await self._call_tool(call)
            results.append(ToolMessage(content=response, tool_call_id=call["id"], name=call["name"]))
        return {"messages": results}

    async def run(self, messages: Sequence[BaseMessage]) -> AIMessage:
        """
        执行 ReAct 循环

        Raises:
            ToolArgumentsError: 模型生成的工具参数无法解码
            RuntimeError: 超过最大步数
        """
        # 每轮占用 model、tools 两个超步
        config = {"recursion_limit": 2 * self.max_steps}
        try:
            state = await self.graph.ainvoke({"messages": list(messages), "has_tool_calls": False}, config=config)
        except GraphRecursionError as e:
            raise RuntimeError(f"超过最大步数 {self.max_steps}，仍未得到最终回答") from e
        return state["messages"][-1]


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="餐厅推荐 ReAct Agent")
    parser.add_argument("--query", default=DEFAULT_QUERY, help="用户问题")
    parser.add_argument("--provider", default=None, help="LLM 提供商（openai/deepseek/dashscope）")
    return parser.parse_args(argv)


async def amain(argv: Optional[Sequence[str]] = None) -> int:
    from Tools.restaurant_tools import get_dish_tool, get_restaurant_tool

    args = _parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        model = LLMFactory.create_llm(load_llm_config(args.provider or settings.default_llm_provider))
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"[ERROR] failed to create chat model: {e}")
        return 1

    callback = LoggerCallback(content_sink=lambda content: print(content, end="", flush=True))
    agent = ReactAgent(
        model,
        tools=[get_restaurant_tool(), get_dish_tool()],
        callbacks=[callback],
        max_steps=settings.agent_max_steps,
    )

    print("[STREAM] Start streaming...\n")
    try:
        await agent.run([SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=args.query)])
    finally:
        # 等待回调中的流消费任务结束，保证输出完整
        await callback.wait_drained()
    print("\n[STREAM] Finished")
    return 0


def main() -> None:
    load_dotenv()
    raise SystemExit(asyncio.run(amain()))


if __name__ == "__main__":
    main()
