"""
Adapter component - CRUD surface over a filesystem collection.

Lifecycle: UNINITIALIZED -> init() -> INITIALIZED -> connect() -> CONNECTED
-> disconnect() -> DISCONNECTED (connect() may be called again).

Key behaviors:
- Every caller-supplied identifier goes through the path guard before any
  filesystem access and is rewritten to its canonical form (`./a` -> `a`),
  the single key used for the file, the cache and the returned SaveResult;
  enumerated identifiers are already canonical and contained
- Reads hand back an EntityStream; a missing entity always raises NotFoundError
- save() overwrites without a version check; concurrent saves to one
  identifier race and the last rename wins
- remove_by_id() of a missing entity returns None
- The optional cache is filled on save and on fully consumed reads, and
  invalidated on every removal
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import stat
from pathlib import Path
from typing import Any

import aiofiles.os

from blobfs.adapters.cache import EntityCache
from blobfs.adapters.fs.guard import GuardedPath, PathGuard
from blobfs.adapters.fs.lister import Lister
from blobfs.adapters.fs.store import StreamStore
from blobfs.adapters.fs.streams import (
    DEFAULT_CHUNK_SIZE,
    CompleteCallback,
    EntityStream,
    MemoryHandle,
    ensure_stream,
)
from blobfs.adapters.ids import UUIDAllocator
from blobfs.core.errors import (
    AdapterStateError,
    BadRequestError,
    ConfigError,
    NotFoundError,
    StoreConnectionError,
)
from blobfs.core.ports import ClockPort, EntityCachePort, IdAllocatorPort, SaveResult
from blobfs.core.query import parse_filters
from blobfs.rules.loader import rules_from_env
from blobfs.rules.models import StoreRules

from .models import AdapterState, parse_meta

logger = logging.getLogger(__name__)


class FSAdapter:
    """
    Filesystem-backed document store adapter.

    Entities are regular files under ``{root}/{collection}``, one file per
    identifier, with path components mirroring the identifier.
    """

    def __init__(
        self,
        root: str | Path | None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        cache: EntityCachePort | None = None,
        allocator: IdAllocatorPort | None = None,
    ) -> None:
        self.root = Path(root) if root else None
        self.cache = cache
        self.allocator = allocator or UUIDAllocator()
        self.store = StreamStore(chunk_size=chunk_size)
        self.state = AdapterState.UNINITIALIZED
        self.collection: str | None = None
        self._guard: PathGuard | None = None
        self._lister: Lister | None = None

    @property
    def collection_dir(self) -> Path:
        if self._guard is None:
            raise AdapterStateError("Adapter is not initialized")
        return self._guard.collection_dir

    # --- Lifecycle ---

    def init(self, collection: str | None) -> None:
        """Bind the collection. Raises ConfigError before touching the filesystem."""
        if self.root is None:
            raise ConfigError("Missing `root` definition!")
        if not collection:
            raise ConfigError("Missing `collection` definition!")

        normalized = posixpath.normpath(collection.replace("\\", "/"))
        if (
            posixpath.isabs(normalized)
            or normalized in (".", "..")
            or normalized.startswith("../")
        ):
            raise ConfigError(f"Collection must be a relative directory name: {collection!r}")

        self.collection = collection
        collection_dir = self.root / normalized
        self._guard = PathGuard(collection_dir)
        self._lister = Lister(collection_dir)
        self.state = AdapterState.INITIALIZED

    async def connect(self) -> None:
        if self.state is AdapterState.UNINITIALIZED:
            raise AdapterStateError("Adapter is not initialized; call init() first")
        if self.state is AdapterState.CONNECTED:
            return

        collection_dir = self.collection_dir
        try:
            st = await aiofiles.os.stat(collection_dir)
        except OSError as e:
            raise StoreConnectionError(
                f"Collection directory is not accessible: {collection_dir}"
            ) from e
        if not stat.S_ISDIR(st.st_mode):
            raise StoreConnectionError(f"Collection path is not a directory: {collection_dir}")

        if self.cache is not None:
            await self.cache.load()
        self.state = AdapterState.CONNECTED
        logger.info("Connected to collection %s", collection_dir)

    async def disconnect(self) -> None:
        """Always succeeds; a failed cache checkpoint is logged."""
        if self.cache is not None and self.state is AdapterState.CONNECTED:
            try:
                await self.cache.checkpoint()
            except OSError:
                logger.exception("Cache checkpoint failed on disconnect")
        if self.state is not AdapterState.UNINITIALIZED:
            self.state = AdapterState.DISCONNECTED
        logger.info("Disconnected from collection %s", self.collection)

    async def __aenter__(self) -> FSAdapter:
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.disconnect()

    def _require_connected(self) -> None:
        if self.state is not AdapterState.CONNECTED:
            raise AdapterStateError(
                f"Adapter is {self.state.value}; call connect() first"
            )

    async def _resolve(self, identifier: str | None) -> GuardedPath:
        assert self._guard is not None
        # Symlink resolution reads the filesystem.
        return await asyncio.to_thread(self._guard.check, identifier)

    # --- Queries ---

    async def find(self, filters: Any = None) -> list[str]:
        """List identifiers, filtered and paged by FindFilters."""
        self._require_connected()
        assert self._lister is not None
        return await self._lister.list(parse_filters(filters))

    async def count(self, filters: Any = None) -> int:
        """Number of identifiers matching filters (offset/limit ignored)."""
        self._require_connected()
        assert self._lister is not None
        return await self._lister.count(parse_filters(filters))

    async def find_one(self, query: Any) -> EntityStream:
        """Open the first entity matching query. Raises NotFoundError if none match."""
        self._require_connected()
        assert self._lister is not None
        filters = parse_filters(query)
        matches = await self._lister.list(filters.model_copy(update={"limit": 1}))
        if not matches:
            raise NotFoundError(None, "No entity matches query")
        identifier = matches[0]
        return await self._open(identifier, self.collection_dir / identifier)

    async def find_by_id(self, identifier: str) -> EntityStream:
        self._require_connected()
        guarded = await self._resolve(identifier)
        return await self._open(guarded.identifier, guarded.path)

    async def _open(self, identifier: str, target: Path) -> EntityStream:
        if self.cache is None:
            return await self.store.open_read(identifier, target)

        content = await self.cache.get(identifier)
        if content is not None:
            logger.debug("Cache hit for %s", identifier)
            return EntityStream(
                identifier,
                MemoryHandle(content),
                chunk_size=self.store.chunk_size,
                size=len(content),
                from_cache=True,
            )

        return await self.store.open_read(
            identifier,
            target,
            on_complete=self._cache_filler(identifier),
            capture_limit=self.cache.max_entry_bytes,
        )

    def _cache_filler(self, identifier: str, filled: list[bool] | None = None) -> CompleteCallback:
        assert self.cache is not None
        cache = self.cache
        expected = cache.stamp(identifier)

        async def fill(ident: str, content: bytes) -> None:
            stored = await cache.put(ident, content, expected=expected)
            if filled is not None:
                filled.append(stored)

        return fill

    # --- Mutations ---

    async def save(self, entity: Any, meta: Any = None) -> SaveResult:
        """
        Store a stream under meta.id, or a freshly allocated identifier.

        Raises:
            PathViolationError: If meta.id escapes the collection
            BadRequestError: If entity is not a stream, or meta.id has the
                reserved ``.<name>.part`` form
            WriteError: If the directory or the file cannot be written
        """
        self._require_connected()
        identifier, target = await self._resolve(parse_meta(meta).id or self.allocator.allocate())
        ensure_stream(entity)

        if self.cache is None:
            return await self.store.write(identifier, target, entity)

        filled: list[bool] = []
        result = await self.store.write(
            identifier,
            target,
            entity,
            on_complete=self._cache_filler(identifier, filled),
            capture_limit=self.cache.max_entry_bytes,
        )
        if not any(filled):
            await self.cache.invalidate(identifier)
        return result

    async def update_by_id(self, entity: Any, meta: Any = None) -> SaveResult:
        """Overwrite an entity; same semantics as save()."""
        return await self.save(entity, meta)

    async def remove_by_id(self, identifier: str) -> SaveResult | None:
        self._require_connected()
        identifier, target = await self._resolve(identifier)
        result = await self.store.remove(identifier, target)
        if self.cache is not None:
            await self.cache.invalidate(identifier)
        return result

    async def remove_many(self, query: Any) -> int:
        """Remove every entity matching query; ``{}`` matches all. Returns the count removed."""
        self._require_connected()
        if query is None:
            raise BadRequestError("remove_many requires a query; use clear() to remove everything")
        assert self._lister is not None
        identifiers = await self._lister.list(parse_filters(query))
        removed = await self._remove_listed(identifiers)
        logger.info("Removed %d entities from %s", removed, self.collection)
        return removed

    async def clear(self) -> int:
        """Remove every entity and empty subdirectory. Returns the count removed."""
        self._require_connected()
        assert self._lister is not None
        identifiers = await self._lister.list()
        removed = await self._remove_listed(identifiers)
        await self.store.prune_empty_dirs(self.collection_dir)
        if self.cache is not None:
            await self.cache.clear()
        logger.info("Cleared %d entities from %s", removed, self.collection)
        return removed

    async def _remove_listed(self, identifiers: list[str]) -> int:
        removed = 0
        for identifier in identifiers:
            result = await self.store.remove(identifier, self.collection_dir / identifier)
            if self.cache is not None:
                await self.cache.invalidate(identifier)
            if result is not None:
                removed += 1
        return removed


def create_adapter(
    rules: StoreRules | None = None,
    *,
    allocator: IdAllocatorPort | None = None,
    clock: ClockPort | None = None,
) -> FSAdapter:
    """
    Factory function to create an initialized FSAdapter from config.

    Args:
        rules: Explicit rules (overrides environment)
        allocator: Identifier allocator (default: UUIDAllocator)
        clock: Clock for cache expiry (default: SystemClock)

    Returns:
        FSAdapter in the INITIALIZED state; call connect() before use
    """
    if rules is None:
        rules = rules_from_env()
    if rules is None:
        raise ConfigError("No store configuration: set BLOBFS_RULES or BLOBFS_ROOT/BLOBFS_COLLECTION")

    adapter = FSAdapter(rules.root, chunk_size=rules.chunk_size, allocator=allocator)
    adapter.init(rules.collection)

    if rules.cache.enabled:
        cache_path: Path | None = None
        if rules.cache.persist:
            cache_path = Path(rules.cache.path or Path(rules.root) / f".{rules.collection}.cache.json")
            base = adapter.collection_dir.resolve()
            if cache_path.resolve() == base or base in cache_path.resolve().parents:
                raise ConfigError(f"Cache file must live outside the collection: {cache_path}")
        adapter.cache = EntityCache(
            max_entries=rules.cache.max_entries,
            max_entry_bytes=rules.cache.max_entry_bytes,
            ttl_seconds=rules.cache.ttl_seconds,
            path=cache_path,
            clock=clock,
        )

    return adapter
