"""
Entity store port interface.

Protocol-based interface for streaming byte storage addressed by a relative
identifier. Implementations: local filesystem (StreamStore).

Invariants:
- Content is never buffered whole; reads hand back a stream handle
- Writes overwrite (last writer wins), with no version check
- Removing a missing identifier is a no-op returning None
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol


@dataclass(frozen=True)
class SaveResult:
    """Identifier of an entity that was written or removed."""

    id: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id}


class EntityReader(Protocol):
    """Readable handle returned by reads."""

    identifier: str

    async def read(self, size: int = -1) -> bytes: ...

    def __aiter__(self) -> AsyncIterator[bytes]: ...

    async def aclose(self) -> None: ...


class EntityStorePort(Protocol):
    """
    Streaming byte storage port.

    Identifiers passed here have already been checked for containment;
    the store works on resolved absolute paths.
    """

    async def open_read(
        self,
        identifier: str,
        target: Path,
        *,
        on_complete: Callable[[str, bytes], Awaitable[Any]] | None = None,
        capture_limit: int = 0,
    ) -> EntityReader:
        """
        Open an entity for streaming read.

        on_complete receives the content once the stream is fully read, if it
        fits in capture_limit bytes.

        Raises:
            NotFoundError: If the target does not exist or cannot be opened
        """
        ...

    async def write(
        self,
        identifier: str,
        target: Path,
        source: Any,
        *,
        on_complete: Callable[[str, bytes], Awaitable[Any]] | None = None,
        capture_limit: int = 0,
    ) -> SaveResult:
        """
        Transfer a source stream into the target, creating parent directories.

        Raises:
            BadRequestError: If source is not a stream
            WriteError: If directory creation or the transfer fails
        """
        ...

    async def remove(self, identifier: str, target: Path) -> SaveResult | None:
        """Delete the target. Returns None if it was already gone."""
        ...
