"""Clock sources used for report timestamps and meter ticks."""

import time


class Clock:
    """Wall-clock time in milliseconds plus a monotonic tick in nanoseconds."""

    def time(self) -> int:
        """Current epoch time in milliseconds."""
        return time.time_ns() // 1_000_000

    def tick(self) -> int:
        """Monotonic time in nanoseconds, only meaningful as a difference."""
        return time.monotonic_ns()


class ManualClock(Clock):
    """Clock advanced by hand, for deterministic reporting in tests and dry runs."""

    def __init__(self, time_ms: int = 0, tick_ns: int = 0):
        self.time_ms = time_ms
        self.tick_ns = tick_ns

    def time(self) -> int:
        return self.time_ms

    def tick(self) -> int:
        return self.tick_ns

    def advance(self, seconds: float) -> None:
        """Move both the wall clock and the tick forward."""
        self.time_ms += int(seconds * 1000)
        self.tick_ns += int(seconds * 1_000_000_000)


DEFAULT_CLOCK = Clock()
