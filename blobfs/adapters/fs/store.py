"""
Filesystem stream store.

Implements EntityStorePort on the local filesystem with aiofiles.

Directory structure: {root}/{collection}/{identifier}

Invariants:
- Reads return an open stream; nothing is buffered beyond one chunk
- Writes go to a hidden ``.part`` sibling and are renamed into place, so a
  reader sees either the old or the new content, never a partial file
- Concurrent writes to one identifier race; the last rename wins
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import secrets
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from blobfs.adapters.fs.streams import (
    DEFAULT_CHUNK_SIZE,
    CompleteCallback,
    EntityStream,
    iter_chunks,
)
from blobfs.core.errors import NotFoundError, WriteError
from blobfs.core.ports.store import SaveResult

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"


def is_part_file(name: str) -> bool:
    """True for in-flight temporary files written by StreamStore."""
    return name.startswith(".") and name.endswith(PART_SUFFIX)


class StreamStore:
    def __init__(self, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self.chunk_size = chunk_size

    async def open_read(
        self,
        identifier: str,
        target: Path,
        *,
        on_complete: CompleteCallback | None = None,
        capture_limit: int = 0,
    ) -> EntityStream:
        """Open the target for streaming read. Missing files raise NotFoundError."""
        try:
            handle = await aiofiles.open(target, "rb")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError, PermissionError) as e:
            raise NotFoundError(identifier) from e

        try:
            size = (await asyncio.to_thread(os.fstat, handle.fileno())).st_size
        except OSError:
            await handle.close()
            raise

        logger.debug("Opened %s for read (%d bytes)", identifier, size)
        return EntityStream(
            identifier,
            handle,
            chunk_size=self.chunk_size,
            size=size,
            on_complete=on_complete,
            capture_limit=capture_limit,
        )

    async def write(
        self,
        identifier: str,
        target: Path,
        source: Any,
        *,
        on_complete: CompleteCallback | None = None,
        capture_limit: int = 0,
    ) -> SaveResult:
        """
        Transfer source into target, creating missing parent directories.

        If on_complete is given and the content fits in capture_limit, it is
        called with the written bytes after the rename.
        """
        await self._ensure_parent(identifier, target.parent)

        part = target.parent / f".{target.name}.{secrets.token_hex(6)}{PART_SUFFIX}"
        captured: list[bytes] | None = [] if on_complete and capture_limit > 0 else None
        written = 0
        committed = False
        try:
            async with aiofiles.open(part, "wb") as out:
                async for chunk in iter_chunks(source, self.chunk_size):
                    await out.write(chunk)
                    written += len(chunk)
                    if captured is not None:
                        if written > capture_limit:
                            captured = None
                        else:
                            captured.append(chunk)
            await aiofiles.os.replace(part, target)
            committed = True
        except OSError as e:
            raise WriteError(
                "Cannot write file.", code="ERR_WRITE_FILE", identifier=identifier
            ) from e
        finally:
            if not committed:
                await self._discard(part)

        logger.debug("Wrote %s (%d bytes)", identifier, written)
        if captured is not None and on_complete is not None:
            await on_complete(identifier, b"".join(captured))
        return SaveResult(id=identifier)

    async def remove(self, identifier: str, target: Path) -> SaveResult | None:
        """Delete the target; a missing file is a no-op returning None."""
        try:
            await aiofiles.os.remove(target)
        except (FileNotFoundError, NotADirectoryError):
            logger.debug("Remove of missing %s ignored", identifier)
            return None
        except OSError as e:
            raise WriteError(
                "Cannot remove file.", code="ERR_WRITE_FILE", identifier=identifier
            ) from e
        logger.debug("Removed %s", identifier)
        return SaveResult(id=identifier)

    async def prune_empty_dirs(self, collection_dir: Path) -> int:
        """Remove empty subdirectories below collection_dir. Returns the count removed."""
        return await asyncio.to_thread(_prune_empty_dirs, collection_dir)

    async def _ensure_parent(self, identifier: str, parent: Path) -> None:
        try:
            await aiofiles.os.makedirs(parent, exist_ok=True)
        except FileExistsError:
            # Lost a race with a concurrent creator, or the path is a file;
            # the latter surfaces when the part file is opened.
            pass
        except OSError as e:
            raise WriteError(
                "Cannot create directory.", code="EEXIST", identifier=identifier
            ) from e

    async def _discard(self, part: Path) -> None:
        try:
            await aiofiles.os.remove(part)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove partial file %s", part, exc_info=True)


def _prune_empty_dirs(collection_dir: Path) -> int:
    removed = 0
    for dirpath, _dirnames, _filenames in os.walk(collection_dir, topdown=False):
        if Path(dirpath) == collection_dir:
            continue
        try:
            os.rmdir(dirpath)
            removed += 1
        except OSError as e:
            # A concurrent save repopulated it.
            if e.errno not in (errno.ENOTEMPTY, errno.EEXIST, errno.ENOENT):
                raise
    return removed
