import time


class SystemClock:
    def time(self) -> float:
        return time.time()


class FixedClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def time(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
