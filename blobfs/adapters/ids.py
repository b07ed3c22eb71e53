import itertools
from uuid import uuid4


class UUIDAllocator:
    """128-bit random identifiers; collisions are treated as negligible."""

    def allocate(self) -> str:
        return uuid4().hex


class SequenceAllocator:
    """Deterministic identifiers (``prefix-1``, ``prefix-2``, ...) for tests and fixtures."""

    def __init__(self, prefix: str = "entity", start: int = 1) -> None:
        self.prefix = prefix
        self._counter = itertools.count(start)

    def allocate(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"
