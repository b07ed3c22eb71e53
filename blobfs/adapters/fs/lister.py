from __future__ import annotations

import asyncio
import os
from pathlib import Path

from blobfs.adapters.fs.store import is_part_file
from blobfs.core.errors import StoreConnectionError
from blobfs.core.query import FindFilters


class Lister:
    """Recursive enumeration of the entities in one collection."""

    def __init__(self, collection_dir: str | Path) -> None:
        self.collection_dir = Path(collection_dir)

    async def list(self, filters: FindFilters | None = None) -> list[str]:
        """Identifiers of every regular file, relative to the collection, '/'-separated."""
        identifiers = await asyncio.to_thread(self._walk)
        return (filters or FindFilters()).apply(identifiers)

    async def count(self, filters: FindFilters | None = None) -> int:
        # Derived from the listing; O(n) in the size of the tree.
        identifiers = await asyncio.to_thread(self._walk)
        return len((filters or FindFilters()).apply(identifiers, paginate=False))

    def _walk(self) -> list[str]:
        found: list[str] = []
        pending = [self.collection_dir]
        while pending:
            current = pending.pop()
            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except FileNotFoundError as e:
                if current == self.collection_dir:
                    raise StoreConnectionError(
                        f"Collection directory is gone: {self.collection_dir}"
                    ) from e
                # Removed by a concurrent clear.
                continue
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    pending.append(Path(entry.path))
                elif entry.is_file(follow_symlinks=False) and not is_part_file(entry.name):
                    found.append(Path(entry.path).relative_to(self.collection_dir).as_posix())
        return found
