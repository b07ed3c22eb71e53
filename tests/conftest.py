from pathlib import Path

import pytest

from blobfs.adapters.cache import EntityCache
from blobfs.adapters.clock import FixedClock
from blobfs.adapters.ids import SequenceAllocator
from blobfs.components.adapter import FSAdapter


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / "store"


@pytest.fixture
def collection_dir(root: Path) -> Path:
    path = root / "docs"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(start=1_000_000.0)


@pytest.fixture
async def adapter(collection_dir: Path):
    """
    Connected adapter over {tmp}/store/docs with deterministic identifiers.
    """
    fs = FSAdapter(collection_dir.parent, allocator=SequenceAllocator("doc"))
    fs.init("docs")
    await fs.connect()
    yield fs
    await fs.disconnect()


@pytest.fixture
async def cached_adapter(collection_dir: Path, clock: FixedClock):
    """Connected adapter with an in-memory cache persisted next to the collection."""
    cache = EntityCache(
        max_entries=8,
        max_entry_bytes=1024,
        ttl_seconds=60,
        path=collection_dir.parent / ".docs.cache.json",
        clock=clock,
    )
    fs = FSAdapter(collection_dir.parent, cache=cache, allocator=SequenceAllocator("doc"))
    fs.init("docs")
    await fs.connect()
    yield fs
    await fs.disconnect()
