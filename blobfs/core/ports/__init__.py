# blobfs - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from blobfs.core.ports.cache import EntityCachePort
from blobfs.core.ports.clock import ClockPort
from blobfs.core.ports.ids import IdAllocatorPort
from blobfs.core.ports.store import EntityReader, EntityStorePort, SaveResult

__all__ = [
    "ClockPort",
    "EntityCachePort",
    "EntityReader",
    "EntityStorePort",
    "IdAllocatorPort",
    "SaveResult",
]
