from __future__ import annotations
import asyncio
from collections import deque
from typing import Deque

from llmgate.core.errors import ChannelClosedError
from llmgate.core.schema import StreamChunk


class ChunkChannel:
    """
    Bounded single-producer / single-consumer channel of StreamChunk values.

    - The producer awaits send() and is suspended while the buffer is full (backpressure).
    - send_final() queues a terminal chunk without waiting and closes the channel,
      so a cancelled producer can still finish the sequence.
    - close() may be called exactly once; a second call raises ChannelClosedError.
    - The consumer iterates with 'async for'; iteration ends once the channel is
      closed and drained.
    """

    def __init__(self, capacity: int = 1):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._buffer: Deque[StreamChunk] = deque()
        self._readable = asyncio.Event()
        self._writable = asyncio.Event()
        self._writable.set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, chunk: StreamChunk) -> None:
        while len(self._buffer) >= self._capacity:
            if self._closed:
                raise ChannelClosedError("send on closed channel")
            self._writable.clear()
            await self._writable.wait()
        self._push(chunk)

    def send_final(self, chunk: StreamChunk) -> None:
        if not chunk.is_terminal:
            raise ValueError("send_final() takes a Done or Error chunk")
        self._push(chunk)
        self.close()

    def close(self) -> None:
        if self._closed:
            raise ChannelClosedError("close of closed channel")
        self._closed = True
        self._readable.set()

    def _push(self, chunk: StreamChunk) -> None:
        if self._closed:
            raise ChannelClosedError("send on closed channel")
        self._buffer.append(chunk)
        self._readable.set()

    def __aiter__(self) -> "ChunkChannel":
        return self

    async def __anext__(self) -> StreamChunk:
        while not self._buffer:
            if self._closed:
                raise StopAsyncIteration
            self._readable.clear()
            await self._readable.wait()
        chunk = self._buffer.popleft()
        self._writable.set()
        return chunk

    async def collect(self) -> list:
        """Drain the channel into a list (tests, non-interactive callers)."""
        return [chunk async for chunk in self]
