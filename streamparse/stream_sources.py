"""Byte-stream sources for StreamParser.

Provides:
- ReadResult and iter_reader() for pull readers (``await reader.read()``)
- iter_response() for httpx responses already opened with ``client.stream()``
- iter_file() for replaying a captured event stream from disk
- as_byte_stream() to pick the right adapter for a source

Note: This module never opens connections. Requests, retries and closing
responses stay with the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

import httpx

logger = logging.getLogger("streamparse.stream_sources")

DEFAULT_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class ReadResult:
    """One pull from a reader: ``done`` marks end-of-stream."""

    done: bool
    value: Optional[bytes] = None


def _as_read_result(result: Any) -> ReadResult:
    if isinstance(result, ReadResult):
        return result
    if isinstance(result, dict):
        return ReadResult(bool(result.get("done")), result.get("value"))
    if isinstance(result, tuple) and len(result) == 2:
        return ReadResult(bool(result[0]), result[1])
    raise TypeError(f"Unsupported read result: {type(result).__name__}")


async def iter_reader(reader: Any) -> AsyncIterator[bytes]:
    """Adapt a pull reader to an async iterable of bytes.

    ``reader.read()`` is awaited once per step, never concurrently. The
    value of a ``done`` result is still yielded when present.
    """
    while True:
        result = _as_read_result(await reader.read())
        if result.value:
            yield bytes(result.value)
        if result.done:
            return


async def iter_response(
    response: httpx.Response, chunk_size: Optional[int] = None
) -> AsyncIterator[bytes]:
    """Raw body chunks of a streaming httpx response.

    Content-encoding is undone by httpx; text decoding is left to the
    parser so split multi-byte characters are handled in one place.
    """
    async for chunk in response.aiter_bytes(chunk_size=chunk_size):
        yield chunk


async def iter_file(path: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Replay a captured stream file in ``chunk_size`` pieces."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                return
            yield chunk
            await asyncio.sleep(0)


def as_byte_stream(source: Any) -> AsyncIterator[bytes]:
    """Return an async iterable of bytes for ``source``.

    Raises TypeError for anything that is not an async iterable, an
    httpx.Response, or an object with an async ``read()``.
    """
    if isinstance(source, httpx.Response):
        return iter_response(source)
    if hasattr(source, "__aiter__"):
        return source
    if hasattr(source, "read"):
        return iter_reader(source)
    raise TypeError(
        f"Unsupported stream source {type(source).__name__}: expected an async "
        f"iterable of bytes, an httpx.Response, or a reader with async read()"
    )
