# src/llmgate/streaming/normalizer.py
"""
Turn incremental backend output into the canonical StreamChunk sequence.

Two framings, fixed per adapter:

- SSE: text lines, significant only when prefixed 'data: '. The literal
  '[DONE]' sentinel ends the stream. Each JSON payload contributes the text at
  choices[0].delta.content, if any. Malformed payloads are skipped.
- Raw JSON: a stream of top-level JSON values (usually one per line). Every
  value is delivered verbatim as one data chunk.

Both normalizers yield exactly one terminal chunk (Done or Error) and nothing after it.
"""
from __future__ import annotations
import json
import logging
from typing import AsyncIterator, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from llmgate.core.errors import StreamError
from llmgate.core.schema import StreamChunk
from llmgate.providers.wire import WireStreamEvent

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "
SSE_DONE_SENTINEL = "[DONE]"

# Faults of the underlying read that end a stream with an Error chunk.
READ_ERRORS = (httpx.HTTPError, httpx.StreamError, OSError, UnicodeDecodeError)

_decoder = json.JSONDecoder()


def decode_sse_payload(payload: str) -> Optional[str]:
    """
    Decode one SSE payload (prefix already stripped) into delta text.
    Returns None when the payload is not a valid stream event.
    """
    try:
        event = WireStreamEvent.model_validate_json(payload)
    except PydanticValidationError:
        return None
    return event.delta_text()


async def iter_sse_chunks(lines: AsyncIterator[str]) -> AsyncIterator[StreamChunk]:
    try:
        async for line in lines:
            if not line.startswith(SSE_DATA_PREFIX):
                continue
            payload = line[len(SSE_DATA_PREFIX):].strip()
            # Sentinel is not JSON; check it first
            if payload == SSE_DONE_SENTINEL:
                yield StreamChunk.finished()
                return
            text = decode_sse_payload(payload)
            if text is None:
                logger.debug("Skipping malformed stream line: %.80s", payload)
                continue
            if text:
                yield StreamChunk.text(text)
    except READ_ERRORS as e:
        err = StreamError(f"stream read failed: {e}")
        err.__cause__ = e
        yield StreamChunk.failed(err)
        return
    # Backend closed without the sentinel: implicit clean end
    yield StreamChunk.finished()


def _is_truncated(buf: str, err: json.JSONDecodeError) -> bool:
    # JSON tokens never span a line break, so a failure followed by one cannot be
    # repaired by more text.
    return "\n" not in buf[err.pos:]


def _needs_more(buf: str, value: object, end: int) -> bool:
    # A bare scalar at the tail of the buffer ('12' of '123') may still be growing.
    return end == len(buf) and not isinstance(value, (dict, list, str))


def _decode_failure(e: json.JSONDecodeError) -> StreamChunk:
    err = StreamError(f"invalid JSON in stream: {e.msg} (at char {e.pos})")
    err.__cause__ = e
    return StreamChunk.failed(err)


async def iter_json_chunks(texts: AsyncIterator[str]) -> AsyncIterator[StreamChunk]:
    buf = ""
    try:
        async for piece in texts:
            buf += piece
            while True:
                buf = buf.lstrip()
                if not buf:
                    break
                try:
                    value, end = _decoder.raw_decode(buf)
                except json.JSONDecodeError as e:
                    if _is_truncated(buf, e):
                        break  # incomplete so far; wait for more text
                    yield _decode_failure(e)
                    return
                if _needs_more(buf, value, end):
                    break
                yield StreamChunk.text(buf[:end])
                buf = buf[end:]
    except READ_ERRORS as e:
        err = StreamError(f"stream read failed: {e}")
        err.__cause__ = e
        yield StreamChunk.failed(err)
        return

    buf = buf.strip()
    if buf:
        try:
            value, end = _decoder.raw_decode(buf)
        except json.JSONDecodeError as e:
            yield _decode_failure(e)
            return
        if buf[end:].strip():
            yield StreamChunk.failed(StreamError("trailing data after JSON value in stream"))
            return
        yield StreamChunk.text(buf[:end])
    yield StreamChunk.finished()
