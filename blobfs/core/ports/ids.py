from typing import Protocol


class IdAllocatorPort(Protocol):
    def allocate(self) -> str:
        """Return a fresh identifier for an unnamed entity."""
        ...
