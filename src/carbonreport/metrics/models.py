"""Metric kinds and the statistical snapshot they expose."""

import math
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import numpy as np

from ..core.clock import DEFAULT_CLOCK, Clock

# Meter rates are folded into their moving averages every five seconds
TICK_INTERVAL_S = 5
TICK_INTERVAL_NS = TICK_INTERVAL_S * 1_000_000_000

DEFAULT_RESERVOIR_SIZE = 1028


class MetricKind(Enum):
    """The closed set of metric kinds a registry can hold."""

    GAUGE = "gauge"
    COUNTER = "counter"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time statistical view of a histogram or timer.

    ``max`` and ``min`` stay integral because recorded values are integral;
    everything else is a float.
    """

    size: int = 0
    max: int = 0
    min: int = 0
    mean: float = 0.0
    stddev: float = 0.0
    median: float = 0.0
    p75: float = 0.0
    p95: float = 0.0
    p98: float = 0.0
    p99: float = 0.0
    p999: float = 0.0

    @classmethod
    def from_values(cls, values: Iterable[int]) -> "Snapshot":
        """Compute a snapshot from raw recorded values."""
        data = np.asarray(list(values), dtype=np.int64)
        if data.size == 0:
            return cls()

        percentiles = np.percentile(data, [50, 75, 95, 98, 99, 99.9])
        return cls(
            size=int(data.size),
            max=int(np.max(data)),
            min=int(np.min(data)),
            mean=float(np.mean(data)),
            stddev=float(np.std(data, ddof=1)) if data.size > 1 else 0.0,
            median=float(percentiles[0]),
            p75=float(percentiles[1]),
            p95=float(percentiles[2]),
            p98=float(percentiles[3]),
            p99=float(percentiles[4]),
            p999=float(percentiles[5]),
        )


class Gauge:
    """Instantaneous value read from a callable every time it is reported."""

    kind = MetricKind.GAUGE

    def __init__(self, value_fn: Callable[[], Any]):
        self._value_fn = value_fn

    @property
    def value(self) -> Any:
        return self._value_fn()


class Counter:
    """Incrementing and decrementing count."""

    kind = MetricKind.COUNTER

    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    @property
    def count(self) -> int:
        return self._count


class Histogram:
    """Distribution of integral values over a sliding window of recent updates."""

    kind = MetricKind.HISTOGRAM

    def __init__(self, reservoir_size: int = DEFAULT_RESERVOIR_SIZE):
        self._count = 0
        self._values: deque = deque(maxlen=reservoir_size)
        self._lock = threading.Lock()

    def update(self, value: int) -> None:
        with self._lock:
            self._count += 1
            self._values.append(int(value))

    @property
    def count(self) -> int:
        return self._count

    def snapshot(self) -> Snapshot:
        with self._lock:
            values = list(self._values)
        return Snapshot.from_values(values)


class EWMA:
    """Exponentially weighted moving average of a rate, in events per second."""

    def __init__(self, minutes: int, interval_s: int = TICK_INTERVAL_S):
        self.alpha = 1 - math.exp(-interval_s / 60.0 / minutes)
        self.interval_s = interval_s
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant_rate = self._uncounted / self.interval_s
        self._uncounted = 0
        if self._initialized:
            self._rate += self.alpha * (instant_rate - self._rate)
        else:
            self._rate = instant_rate
            self._initialized = True

    @property
    def rate(self) -> float:
        return self._rate


class Meter:
    """Event throughput: a count plus 1, 5 and 15 minute moving averages."""

    kind = MetricKind.METER

    def __init__(self, clock: Clock = DEFAULT_CLOCK):
        self.clock = clock
        self._count = 0
        self._m1 = EWMA(1)
        self._m5 = EWMA(5)
        self._m15 = EWMA(15)
        self._start_time = clock.tick()
        self._last_tick = self._start_time
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            for ewma in (self._m1, self._m5, self._m15):
                ewma.update(n)

    def _tick_if_necessary(self) -> None:
        now = self.clock.tick()
        age = now - self._last_tick
        if age > TICK_INTERVAL_NS:
            self._last_tick = now - age % TICK_INTERVAL_NS
            for _ in range(age // TICK_INTERVAL_NS):
                for ewma in (self._m1, self._m5, self._m15):
                    ewma.tick()

    @property
    def count(self) -> int:
        return self._count

    @property
    def m1_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
        return self._m1.rate

    @property
    def m5_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
        return self._m5.rate

    @property
    def m15_rate(self) -> float:
        with self._lock:
            self._tick_if_necessary()
        return self._m15.rate

    @property
    def mean_rate(self) -> float:
        if self._count == 0:
            return 0.0
        elapsed_s = (self.clock.tick() - self._start_time) / 1e9
        if elapsed_s <= 0:
            return 0.0
        return self._count / elapsed_s


class Timer:
    """Meter of events plus a histogram of their durations in nanoseconds."""

    kind = MetricKind.TIMER

    def __init__(self, clock: Clock = DEFAULT_CLOCK, reservoir_size: int = DEFAULT_RESERVOIR_SIZE):
        self.clock = clock
        self._meter = Meter(clock)
        self._histogram = Histogram(reservoir_size)

    def update(self, duration_ns: int) -> None:
        """Record one event that took ``duration_ns`` nanoseconds."""
        if duration_ns >= 0:
            self._histogram.update(duration_ns)
            self._meter.mark()

    @contextmanager
    def time(self) -> Iterator[None]:
        """Time the body of a ``with`` block."""
        start = self.clock.tick()
        try:
            yield
        finally:
            self.update(self.clock.tick() - start)

    @property
    def count(self) -> int:
        return self._histogram.count

    @property
    def m1_rate(self) -> float:
        return self._meter.m1_rate

    @property
    def m5_rate(self) -> float:
        return self._meter.m5_rate

    @property
    def m15_rate(self) -> float:
        return self._meter.m15_rate

    @property
    def mean_rate(self) -> float:
        return self._meter.mean_rate

    def snapshot(self) -> Snapshot:
        return self._histogram.snapshot()


@dataclass
class RegistrySnapshot:
    """Cycle-scoped view of a registry: one path-ordered mapping per metric kind."""

    gauges: Dict[str, Any] = field(default_factory=dict)
    counters: Dict[str, Any] = field(default_factory=dict)
    histograms: Dict[str, Any] = field(default_factory=dict)
    meters: Dict[str, Any] = field(default_factory=dict)
    timers: Dict[str, Any] = field(default_factory=dict)

    def of_kind(self, kind: MetricKind) -> Dict[str, Any]:
        """The mapping holding metrics of ``kind``."""
        return getattr(self, SNAPSHOT_ATTRIBUTES[kind])

    def __len__(self) -> int:
        return (
            len(self.gauges) + len(self.counters) + len(self.histograms)
            + len(self.meters) + len(self.timers)
        )


SNAPSHOT_ATTRIBUTES = {
    MetricKind.GAUGE: "gauges",
    MetricKind.COUNTER: "counters",
    MetricKind.HISTOGRAM: "histograms",
    MetricKind.METER: "meters",
    MetricKind.TIMER: "timers",
}


def kind_of(metric: Any) -> Optional[MetricKind]:
    """Return the kind tag of a metric, or None for objects that are not metrics."""
    return getattr(metric, "kind", None)
