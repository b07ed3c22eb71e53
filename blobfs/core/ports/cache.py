from __future__ import annotations

from typing import Protocol


class EntityCachePort(Protocol):
    """Identifier -> content accelerator layered in front of the store."""

    max_entry_bytes: int

    async def get(self, identifier: str) -> bytes | None:
        """Return cached content, or None on a miss or expired entry."""
        ...

    def stamp(self, identifier: str) -> int:
        """Mutation stamp used to detect writes racing a fill."""
        ...

    async def put(self, identifier: str, content: bytes, *, expected: int | None = None) -> bool:
        """Cache content. Returns False if it was too large or the key changed since expected."""
        ...

    async def invalidate(self, identifier: str) -> None: ...

    async def clear(self) -> None: ...

    async def load(self) -> int:
        """Load persisted entries. Returns the number loaded."""
        ...

    async def checkpoint(self) -> int:
        """Persist entries. Returns the number written."""
        ...
