"""
测试 drain_stream：内容转发、各种退出路径下读取端只关闭一次
"""

import asyncio
from typing import Any, List, Optional

from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage

from core.callbacks import ChatModelCallbackOutput
from core.stream import EndOfStream, StreamClosedError, StreamReader
from core.stream_drain import assistant_content, drain_stream


class SpyReader:
    """按顺序返回帧，并统计 aclose 次数"""

    def __init__(self, frames: List[Any], error: Optional[Exception] = None):
        self.frames = list(frames)
        self.error = error
        self.close_calls = 0

    async def recv(self) -> Any:
        if self.frames:
            return self.frames.pop(0)
        if self.error is not None:
            raise self.error
        raise EndOfStream()

    async def aclose(self) -> None:
        self.close_calls += 1


def chunks(*contents: str) -> List[AIMessageChunk]:
    return [AIMessageChunk(content=c) for c in contents]


def test_forwards_non_empty_assistant_content_in_order():
    received: List[str] = []
    reader = StreamReader.from_iterable(chunks("A", "", "B"))

    forwarded = asyncio.run(drain_stream(reader, received.append))

    assert received == ["A", "B"]
    assert forwarded == 2
    assert reader.closed


def test_closes_once_on_end_of_stream():
    reader = SpyReader(chunks("x"))
    asyncio.run(drain_stream(reader, lambda content: None))
    assert reader.close_calls == 1


def test_read_error_stops_drain_without_raising(caplog):
    received: List[str] = []
    reader = SpyReader(chunks("before"), error=ConnectionError("reset"))

    forwarded = asyncio.run(drain_stream(reader, received.append, name="chat_model"))

    assert received == ["before"]
    assert forwarded == 1
    assert reader.close_calls == 1
    assert "failed to recv from stream chat_model" in caplog.text


def test_observer_can_stop_early():
    received: List[str] = []
    reader = SpyReader(chunks("one", "two", "three"))

    def observer(content: str) -> bool:
        received.append(content)
        return False

    forwarded = asyncio.run(drain_stream(reader, observer))

    assert received == ["one"]
    assert forwarded == 1
    assert reader.close_calls == 1
    assert len(reader.frames) == 2


def test_observer_failure_is_logged_and_stream_closed(caplog):
    reader = SpyReader(chunks("one", "two"))

    def observer(content: str) -> None:
        raise ValueError("sink broken")

    forwarded = asyncio.run(drain_stream(reader, observer))

    assert forwarded == 0
    assert reader.close_calls == 1
    assert "sink broken" in caplog.text


def test_stream_closed_elsewhere_ends_drain():
    reader = SpyReader([], error=StreamClosedError())
    assert asyncio.run(drain_stream(reader, lambda content: None)) == 0
    assert reader.close_calls == 1


def test_unrecognised_frames_are_dropped():
    received: List[str] = []
    frames = [
        HumanMessage(content="user text"),
        "raw string",
        {"content": "dict"},
        ChatModelCallbackOutput(message=None),
        ChatModelCallbackOutput(message=AIMessageChunk(content="wrapped")),
        AIMessage(content="full"),
    ]

    asyncio.run(drain_stream(SpyReader(frames), received.append))

    assert received == ["wrapped", "full"]


def test_assistant_content_reads_text_blocks():
    message = AIMessage(content=[{"type": "text", "text": "he"}, "llo", {"type": "image_url", "image_url": {"url": "x"}}])
    assert assistant_content(message) == "hello"
    assert assistant_content(ChatModelCallbackOutput(message=HumanMessage(content="no"))) == ""
