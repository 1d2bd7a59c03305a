"""
流式输出读取模块

提供基于 asyncio 的可关闭有序流，用于在 callback 与 Agent 之间传递模型流式输出。

主要组件:
    - pipe: 创建一对 (StreamReader, StreamWriter)
    - StreamReader: recv() 逐帧读取，aclose() 释放资源，copy(n) 复制出 n 个独立读取端
    - StreamWriter: send() 写入帧（可附带错误），aclose() 写入结束信号
    - EndOfStream: 流正常结束（不是错误）
    - StreamClosedError: 读取端已关闭（包括关闭时正阻塞在 recv() 上的读取）

设计约束:
    - 帧顺序在每个读取端上保持不变
    - copy() 出的各读取端互不阻塞：后台 pump 任务把上游帧写入共享缓冲区，每个读取端各自维护游标
    - 所有副本关闭（或上游结束）后上游被关闭，且只关闭一次
    - 后台任务的异常记录到日志，不会静默丢失

使用示例:
    reader, writer = pipe()
    await writer.send("hello")
    await writer.aclose()

    async for frame in reader:
        print(frame)
"""

import asyncio
import logging
from collections import deque
from typing import (
    Any,
    AsyncIterable,
    Deque,
    Generic,
    Iterable,
    List,
    Optional,
    Tuple,
    TypeVar,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (item, error)：error 不为 None 时该帧表示一次读取错误
_Frame = Tuple[Any, Optional[BaseException]]


class EndOfStream(Exception):
    """流已正常结束"""


class StreamClosedError(Exception):
    """读取端已关闭"""

    def __init__(self, message: str = "stream reader closed"):
        super().__init__(message)


def log_task_exception(task: "asyncio.Task[Any]") -> None:
    """后台任务结束回调：记录未处理的异常"""
    if task.cancelled():
        logger.debug(f"后台任务被取消: {task.get_name()}")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"后台任务异常退出: {task.get_name()}: {exc!r}", exc_info=exc)


class _Pipe:
    """单读单写的缓冲通道，capacity <= 0 表示不限容量"""

    def __init__(self, capacity: int = 0):
        self._buffer: Deque[_Frame] = deque()
        self._capacity = capacity
        self._cond = asyncio.Condition()
        self._writer_closed = False
        self._reader_closed = False

    def _has_room(self) -> bool:
        return self._capacity <= 0 or len(self._buffer) < self._capacity

    def put_nowait(self, item: Any, error: Optional[BaseException] = None) -> None:
        # 仅用于构造阶段预填充，此时没有并发读写
        self._buffer.append((item, error))

    def mark_writer_closed(self) -> None:
        self._writer_closed = True

    async def send(self, item: Any, error: Optional[BaseException]) -> bool:
        async with self._cond:
            if self._writer_closed:
                return True
            await self._cond.wait_for(lambda: self._reader_closed or self._has_room())
            if self._reader_closed:
                return True
            self._buffer.append((item, error))
            self._cond.notify_all()
            return False

    async def recv(self) -> Any:
        async with self._cond:
            await self._cond.wait_for(
                lambda: self._reader_closed or bool(self._buffer) or self._writer_closed
            )
            if self._reader_closed:
                raise StreamClosedError()
            if self._buffer:
                item, error = self._buffer.popleft()
                self._cond.notify_all()
                if error is not None:
                    raise error
                return item
            raise EndOfStream()

    async def close_writer(self) -> None:
        async with self._cond:
            self._writer_closed = True
            self._cond.notify_all()

    async def close(self) -> None:
        async with self._cond:
            self._reader_closed = True
            self._buffer.clear()
            self._cond.notify_all()


class _Fanout:
    """
    上游流的多读取端分发

    pump 任务在第一个读取端 recv() 时启动，持续把上游帧追加到共享缓冲区。
    缓冲区按所有打开读取端中最小的游标裁剪。
    """

    def __init__(self, source: "StreamReader[Any]", n: int):
        self._source = source
        self._frames: List[_Frame] = []
        self._base = 0
        self._cursors = [0] * n
        self._open = [True] * n
        self._done = False
        self._cond = asyncio.Condition()
        self._pump: Optional["asyncio.Task[None]"] = None

    def _ensure_pump(self) -> None:
        if self._pump is None:
            self._pump = asyncio.get_running_loop().create_task(self._run_pump(), name="stream-fanout-pump")
            self._pump.add_done_callback(log_task_exception)

    async def _run_pump(self) -> None:
        try:
            while True:
                frame: _Frame
                terminal = False
                try:
                    frame = (await self._source.recv(), None)
                except EndOfStream:
                    break
                except StreamClosedError as e:
                    # 上游被外部关闭：仍打开的读取端收到 StreamClosedError，而不是正常结束
                    frame = (None, e)
                    terminal = True
                except Exception as e:
                    frame = (None, e)
                async with self._cond:
                    if not any(self._open):
                        break
                    self._frames.append(frame)
                    self._cond.notify_all()
                if terminal:
                    break
        finally:
            async with self._cond:
                self._done = True
                self._cond.notify_all()
            await self._source.aclose()

    def _trim(self) -> None:
        open_cursors = [c for c, alive in zip(self._cursors, self._open) if alive]
        if not open_cursors:
            self._frames.clear()
            return
        drop = min(open_cursors) - self._base
        if drop > 0:
            del self._frames[:drop]
            self._base += drop

    async def recv(self, index: int) -> Any:
        self._ensure_pump()
        async with self._cond:
            await self._cond.wait_for(
                lambda: not self._open[index]
                or self._cursors[index] - self._base < len(self._frames)
                or self._done
            )
            if not self._open[index]:
                raise StreamClosedError()
            offset = self._cursors[index] - self._base
            if offset < len(self._frames):
                item, error = self._frames[offset]
                self._cursors[index] += 1
                self._trim()
                if error is not None:
                    raise error
                return item
            raise EndOfStream()

    async def close(self, index: int) -> None:
        async with self._cond:
            self._open[index] = False
            self._trim()
            self._cond.notify_all()
            last = not any(self._open)
        if last:
            # 唤醒可能阻塞在上游 recv() 上的 pump
            await self._source.aclose()


class _FanoutChild:
    def __init__(self, fanout: _Fanout, index: int):
        self._fanout = fanout
        self._index = index

    async def recv(self) -> Any:
        return await self._fanout.recv(self._index)

    async def close(self) -> None:
        await self._fanout.close(self._index)


class StreamReader(Generic[T]):
    """
    可关闭的有序流读取端

    recv() 的终止方式：
    - 正常结束抛出 EndOfStream；
    - 帧携带错误时抛出该错误；
    - 读取端关闭后抛出 StreamClosedError。
    """

    def __init__(self, source: Any):
        self._source = source
        self._closed = False
        self._producer: Optional["asyncio.Task[None]"] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def recv(self) -> T:
        if self._closed:
            raise StreamClosedError()
        return await self._source.recv()

    async def aclose(self) -> None:
        """关闭读取端（幂等）"""
        if self._closed:
            return
        self._closed = True
        await self._source.close()

    def copy(self, n: int) -> List["StreamReader[T]"]:
        """
        复制出 n 个独立读取端，原读取端此后不应再直接使用

        n < 2 时返回仅包含自身的列表。
        """
        if n < 2:
            return [self]
        fanout = _Fanout(self, n)
        return [StreamReader(_FanoutChild(fanout, i)) for i in range(n)]

    def __aiter__(self) -> "StreamReader[T]":
        return self

    async def __anext__(self) -> T:
        try:
            return await self.recv()
        except EndOfStream:
            raise StopAsyncIteration

    @classmethod
    def from_iterable(cls, items: Iterable[T]) -> "StreamReader[T]":
        """由有限序列构造已写完的流"""
        channel = _Pipe()
        for item in items:
            channel.put_nowait(item)
        channel.mark_writer_closed()
        return cls(channel)

    @classmethod
    def from_async_iterable(cls, source: AsyncIterable[T], capacity: int = 0) -> "StreamReader[T]":
        """
        由异步迭代器（如 BaseChatModel.astream）构造流

        生产任务在后台运行，迭代器抛出的异常作为错误帧写入流；
        读取端关闭后停止生产。必须在事件循环中调用。
        """
        reader, writer = pipe(capacity)

        async def _produce() -> None:
            iterator = source.__aiter__()
            try:
                while True:
                    try:
                        item = await iterator.__anext__()
                    except StopAsyncIteration:
                        break
                    except Exception as e:
                        await writer.send(None, e)
                        break
                    if await writer.send(item):
                        break
            finally:
                await writer.aclose()
                aclose = getattr(iterator, "aclose", None)
                if aclose is not None:
                    await aclose()

        reader._producer = asyncio.get_running_loop().create_task(_produce(), name="stream-producer")
        reader._producer.add_done_callback(log_task_exception)
        return reader


class StreamWriter(Generic[T]):
    """流写入端"""

    def __init__(self, channel: _Pipe):
        self._channel = channel

    async def send(self, item: Optional[T], error: Optional[BaseException] = None) -> bool:
        """
        写入一帧

        Returns:
            bool: True 表示读取端已关闭，生产者应停止写入
        """
        return await self._channel.send(item, error)

    async def aclose(self) -> None:
        """写入结束信号"""
        await self._channel.close_writer()


def pipe(capacity: int = 0) -> Tuple[StreamReader[Any], StreamWriter[Any]]:
    """
    创建一对读写端

    Args:
        capacity: 缓冲区容量，<= 0 表示不限
    """
    channel = _Pipe(capacity)
    return StreamReader(channel), StreamWriter(channel)


__all__ = [
    "EndOfStream",
    "StreamClosedError",
    "StreamReader",
    "StreamWriter",
    "pipe",
    "log_task_exception",
]
