# tests/unit/test_channel.py

from __future__ import annotations
import asyncio
import pytest

from llmgate.core.errors import ChannelClosedError, StreamError
from llmgate.core.schema import StreamChunk
from llmgate.streaming.channel import ChunkChannel


def test_stream_chunk_carries_exactly_one_thing():
    assert StreamChunk.text("a").data == "a"
    assert StreamChunk.finished().is_terminal
    assert StreamChunk.failed(StreamError("x")).is_terminal
    with pytest.raises(ValueError):
        StreamChunk()
    with pytest.raises(ValueError):
        StreamChunk(data="a", done=True)
    with pytest.raises(ValueError):
        StreamChunk(done=True, error=StreamError("x"))


@pytest.mark.asyncio
async def test_producer_waits_until_consumer_drains():
    ch = ChunkChannel(capacity=1)
    await ch.send(StreamChunk.text("one"))

    second = asyncio.create_task(ch.send(StreamChunk.text("two")))
    await asyncio.sleep(0)
    assert not second.done()          # buffer full: producer suspended

    assert (await ch.__anext__()).data == "one"
    await asyncio.wait_for(second, timeout=1)
    ch.send_final(StreamChunk.finished())

    rest = await ch.collect()
    assert [c.data for c in rest[:-1]] == ["two"]
    assert rest[-1].done


@pytest.mark.asyncio
async def test_send_final_does_not_wait_and_closes():
    ch = ChunkChannel(capacity=1)
    await ch.send(StreamChunk.text("a"))
    ch.send_final(StreamChunk.failed(StreamError("boom")))   # over capacity by one, no await
    assert ch.closed
    chunks = await ch.collect()
    assert chunks[0].data == "a"
    assert isinstance(chunks[1].error, StreamError)


@pytest.mark.asyncio
async def test_close_exactly_once_and_no_send_after_close():
    ch = ChunkChannel()
    ch.close()
    with pytest.raises(ChannelClosedError):
        ch.close()
    with pytest.raises(ChannelClosedError):
        await ch.send(StreamChunk.text("late"))
    with pytest.raises(ChannelClosedError):
        ch.send_final(StreamChunk.finished())
    assert await ch.collect() == []


@pytest.mark.asyncio
async def test_consumer_wakes_on_close():
    ch = ChunkChannel()
    reader = asyncio.create_task(ch.collect())
    await asyncio.sleep(0)
    ch.close()
    assert await asyncio.wait_for(reader, timeout=1) == []


def test_send_final_rejects_data_chunk():
    ch = ChunkChannel()
    with pytest.raises(ValueError):
        ch.send_final(StreamChunk.text("not terminal"))
