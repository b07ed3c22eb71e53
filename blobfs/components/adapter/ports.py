"""
Adapter component port definitions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from blobfs.adapters.fs.guard import GuardedPath
from blobfs.core.ports import EntityCachePort, EntityStorePort, IdAllocatorPort
from blobfs.core.query import FindFilters


class PathGuardPort(Protocol):
    collection_dir: Path

    def check(self, identifier: str | None) -> GuardedPath:
        """Return the canonical identifier and contained path, or raise PathViolationError."""
        ...


class ListerPort(Protocol):
    async def list(self, filters: FindFilters | None = None) -> list[str]: ...

    async def count(self, filters: FindFilters | None = None) -> int: ...


__all__ = [
    "EntityCachePort",
    "EntityStorePort",
    "IdAllocatorPort",
    "ListerPort",
    "PathGuardPort",
]
