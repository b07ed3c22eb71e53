"""
In-memory entity cache with optional on-disk checkpoint.

Implements EntityCachePort. Entries live in an LRU-ordered map bounded by
max_entries, expire after ttl_seconds (if set) and are never larger than
max_entry_bytes. The side file is only read on load() and written on
checkpoint(); normal get/put never touch disk. Once the instance has loaded
or checkpointed, memory is at least as fresh as the side file, so later
load() calls keep it; a failed checkpoint deletes the side file so no other
instance can load the older snapshot.

Every mutation of a key records a stamp from a monotonically increasing
counter. A caller that reads content from disk takes the key's stamp first
and fills the cache with ``put(..., expected=stamp)``; if anything mutated
the key in between, the fill is dropped and the key invalidated, so a slow
reader can never overwrite fresher content.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import os
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from blobfs.adapters.clock import SystemClock
from blobfs.core.ports.clock import ClockPort

logger = logging.getLogger(__name__)

CACHE_FILE_VERSION = 1


@dataclass
class CacheEntry:
    content: bytes
    stored_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0


class EntityCache:
    def __init__(
        self,
        *,
        max_entries: int = 1024,
        max_entry_bytes: int = 1024 * 1024,
        ttl_seconds: float | None = None,
        path: str | Path | None = None,
        clock: ClockPort | None = None,
    ) -> None:
        self.max_entries = max_entries
        self.max_entry_bytes = max_entry_bytes
        self.ttl_seconds = ttl_seconds
        self.path = Path(path) if path is not None else None
        self.clock = clock or SystemClock()
        self.stats = CacheStats()

        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._counter = 0
        self._floor = 0
        self._stamps: dict[str, int] = {}
        self._persist_lock = asyncio.Lock()
        self._synced = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._entries

    # --- Stamps ---

    def stamp(self, identifier: str) -> int:
        """Current mutation stamp for a key."""
        return self._stamps.get(identifier, self._floor)

    def _touch(self, identifier: str) -> None:
        self._counter += 1
        self._stamps[identifier] = self._counter

    # --- Port operations ---

    async def get(self, identifier: str) -> bytes | None:
        entry = self._entries.get(identifier)
        if entry is None:
            self.stats.misses += 1
            return None
        if self._expired(entry):
            self._entries.pop(identifier, None)
            self.stats.expirations += 1
            self.stats.misses += 1
            return None
        self._entries.move_to_end(identifier)
        self.stats.hits += 1
        return entry.content

    async def put(self, identifier: str, content: bytes, *, expected: int | None = None) -> bool:
        """
        Cache content for a key.

        Returns False (and drops any cached value) if the content is too large
        or the key was mutated since ``expected`` was taken.
        """
        if expected is not None and self.stamp(identifier) != expected:
            await self.invalidate(identifier)
            return False
        if len(content) > self.max_entry_bytes:
            await self.invalidate(identifier)
            return False

        self._entries[identifier] = CacheEntry(content=content, stored_at=self.clock.time())
        self._entries.move_to_end(identifier)
        self._touch(identifier)
        self._evict()
        return True

    async def invalidate(self, identifier: str) -> None:
        self._entries.pop(identifier, None)
        self._touch(identifier)

    async def clear(self) -> None:
        self._entries.clear()
        self._stamps.clear()
        self._counter += 1
        self._floor = self._counter

    # --- Persistence ---

    async def load(self) -> int:
        """
        Replace in-memory entries with those from the side file.

        Only the first load reads the file; after that the in-memory entries
        are newer than anything on disk and are kept as they are.
        """
        if self.path is None:
            return 0
        if self._synced:
            logger.debug("Keeping %d in-memory cache entries over %s", len(self._entries), self.path)
            return len(self._entries)
        async with self._persist_lock:
            raw = await asyncio.to_thread(_read_cache_file, self.path)

        self._entries.clear()
        for identifier, item in raw.items():
            try:
                entry = CacheEntry(
                    content=base64.b64decode(item["content"]),
                    stored_at=float(item["stored_at"]),
                )
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed cache entry %r", identifier)
                continue
            if self._expired(entry) or len(entry.content) > self.max_entry_bytes:
                continue
            self._entries[identifier] = entry
            self._touch(identifier)
        self._evict()
        self._synced = True
        logger.info("Loaded %d cache entries from %s", len(self._entries), self.path)
        return len(self._entries)

    async def checkpoint(self) -> int:
        """
        Write live entries to the side file atomically.

        On failure the previous side file is deleted before the error is
        re-raised.
        """
        if self.path is None:
            return 0
        snapshot = {
            identifier: {
                "content": base64.b64encode(entry.content).decode("ascii"),
                "stored_at": entry.stored_at,
            }
            for identifier, entry in self._entries.items()
            if not self._expired(entry)
        }
        async with self._persist_lock:
            try:
                await asyncio.to_thread(_write_cache_file, self.path, snapshot)
            except OSError:
                await asyncio.to_thread(_discard_cache_file, self.path)
                raise
        self._synced = True
        logger.debug("Checkpointed %d cache entries to %s", len(snapshot), self.path)
        return len(snapshot)

    # --- Internals ---

    def _expired(self, entry: CacheEntry) -> bool:
        if self.ttl_seconds is None:
            return False
        return self.clock.time() - entry.stored_at >= self.ttl_seconds

    def _evict(self) -> None:
        while len(self._entries) > self.max_entries:
            identifier, _ = self._entries.popitem(last=False)
            self._touch(identifier)
            self.stats.evictions += 1


def _read_cache_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable cache file %s: %s", path, e)
        return {}
    if not isinstance(data, dict) or data.get("version") != CACHE_FILE_VERSION:
        logger.warning("Ignoring cache file %s with unknown format", path)
        return {}
    entries = data.get("entries")
    return entries if isinstance(entries, dict) else {}


def _write_cache_file(path: Path, entries: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump({"version": CACHE_FILE_VERSION, "entries": entries}, f)
    os.replace(tmp, path)


def _discard_cache_file(path: Path) -> None:
    for stale in (path, path.with_name(f"{path.name}.tmp")):
        try:
            stale.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove stale cache file %s", stale, exc_info=True)
