"""
Stream helpers for entity transfer.

EntityStream wraps an open file (or an in-memory buffer for cache hits) and
hands it to the caller chunk by chunk. iter_chunks adapts the source kinds a
caller may pass to save() into one async chunk iterator.
"""

from __future__ import annotations

import asyncio
import inspect
import io
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from typing import Any

from blobfs.core.errors import BadRequestError

DEFAULT_CHUNK_SIZE = 64 * 1024

CompleteCallback = Callable[[str, bytes], Awaitable[Any]]


class MemoryHandle:
    """Async file-like view over bytes already held in memory."""

    def __init__(self, content: bytes) -> None:
        self._buffer = io.BytesIO(content)

    async def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    async def close(self) -> None:
        self._buffer.close()


class EntityStream:
    """
    Readable stream over one stored entity.

    Supports ``await stream.read(n)``, ``async for chunk in stream`` and
    ``async with stream``. If ``on_complete`` is given, the bytes read are
    captured up to ``capture_limit`` and passed to it once the stream reaches
    EOF; larger entities are not captured.
    """

    def __init__(
        self,
        identifier: str,
        handle: Any,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        size: int | None = None,
        from_cache: bool = False,
        on_complete: CompleteCallback | None = None,
        capture_limit: int = 0,
    ) -> None:
        self.identifier = identifier
        self.chunk_size = chunk_size
        self.size = size
        self.from_cache = from_cache
        self._handle = handle
        self._on_complete = on_complete
        self._capture: list[bytes] | None = [] if on_complete and capture_limit > 0 else None
        self._captured = 0
        self._capture_limit = capture_limit
        self._eof = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, size: int = -1) -> bytes:
        if self._closed:
            raise ValueError(f"Stream for {self.identifier!r} is closed")
        data = await self._handle.read(size)
        if self._capture is not None and data:
            self._captured += len(data)
            if self._captured > self._capture_limit:
                self._capture = None
            else:
                self._capture.append(data)
        if not data or size is None or size < 0:
            await self._finish()
        return data

    async def _finish(self) -> None:
        if self._eof:
            return
        self._eof = True
        if self._capture is not None and self._on_complete is not None:
            content = b"".join(self._capture)
            self._capture = None
            await self._on_complete(self.identifier, content)

    async def _chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(self.chunk_size)
            if not chunk:
                return
            yield chunk

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._handle.close()

    async def __aenter__(self) -> EntityStream:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"EntityStream({self.identifier!r}, from_cache={self.from_cache})"


def ensure_stream(source: Any) -> None:
    """
    Reject values that are not streams before anything touches disk.

    Raw bytes and strings are rejected on purpose: content must arrive as a
    stream so large entities are never required to sit in memory.
    """
    if isinstance(source, (bytes, bytearray, memoryview, str)) or source is None:
        raise BadRequestError("Entity is not a stream")
    if hasattr(source, "read") or hasattr(source, "__aiter__") or isinstance(source, Iterator):
        return
    raise BadRequestError("Entity is not a stream")


def _as_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, (bytearray, memoryview)):
        return bytes(chunk)
    raise BadRequestError(f"Stream yielded {type(chunk).__name__}, expected bytes")


async def iter_chunks(source: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield the source's content as bytes chunks without buffering it whole."""
    ensure_stream(source)

    if hasattr(source, "read"):
        read = source.read
        while True:
            if inspect.iscoroutinefunction(read):
                chunk = await read(chunk_size)
            elif isinstance(source, io.BytesIO):
                chunk = read(chunk_size)
            else:
                chunk = await asyncio.to_thread(read, chunk_size)
            if inspect.isawaitable(chunk):
                chunk = await chunk
            if not chunk:
                return
            yield _as_bytes(chunk)

    elif hasattr(source, "__aiter__"):
        async for chunk in source:
            if chunk:
                yield _as_bytes(chunk)

    else:
        for chunk in source:
            if chunk:
                yield _as_bytes(chunk)
