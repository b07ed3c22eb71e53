from typing import Protocol


class ClockPort(Protocol):
    def time(self) -> float:
        """Return current UNIX time in seconds."""
        ...
