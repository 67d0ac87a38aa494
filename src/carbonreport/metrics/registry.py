"""In-process metric registry."""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Type

from ..core.clock import DEFAULT_CLOCK, Clock
from .models import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    RegistrySnapshot,
    Timer,
    kind_of,
)

logger = logging.getLogger(__name__)


class MetricRegistry:
    """Named collection of metrics, read once per reporting cycle."""

    def __init__(self, clock: Clock = DEFAULT_CLOCK):
        self.clock = clock
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, name: str, metric: Any) -> Any:
        """Add a metric under ``name``.

        Raises:
            ValueError: if the name is taken or the object is not a metric
        """
        if kind_of(metric) is None:
            raise ValueError(f"Not a metric: {metric!r}")

        with self._lock:
            if name in self._metrics:
                raise ValueError(f"A metric named {name} already exists")
            self._metrics[name] = metric

        logger.debug(f"Registered {metric.kind.value} {name}")
        return metric

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._metrics.pop(name, None) is not None

    def gauge(self, name: str, value_fn: Callable[[], Any]) -> Gauge:
        return self.register(name, Gauge(value_fn))

    def counter(self, name: str) -> Counter:
        return self._get_or_add(name, Counter, Counter)

    def histogram(self, name: str) -> Histogram:
        return self._get_or_add(name, Histogram, Histogram)

    def meter(self, name: str) -> Meter:
        return self._get_or_add(name, Meter, lambda: Meter(self.clock))

    def timer(self, name: str) -> Timer:
        return self._get_or_add(name, Timer, lambda: Timer(self.clock))

    def _get_or_add(self, name: str, metric_cls: Type, factory: Callable[[], Any]) -> Any:
        with self._lock:
            existing = self._metrics.get(name)
            if existing is None:
                existing = factory()
                self._metrics[name] = existing
                logger.debug(f"Registered {existing.kind.value} {name}")
                return existing

        if not isinstance(existing, metric_cls):
            raise ValueError(
                f"{name} is already registered as a {existing.kind.value}, "
                f"not a {metric_cls.kind.value}"
            )
        return existing

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._metrics)

    def get(self, name: str) -> Optional[Any]:
        return self._metrics.get(name)

    def snapshot(self) -> RegistrySnapshot:
        """Take the path-ordered mappings for one reporting cycle."""
        with self._lock:
            items = sorted(self._metrics.items())

        snapshot = RegistrySnapshot()
        for name, metric in items:
            snapshot.of_kind(metric.kind)[name] = metric
        return snapshot

    def __len__(self) -> int:
        return len(self._metrics)

    def __contains__(self, name: str) -> bool:
        return name in self._metrics
