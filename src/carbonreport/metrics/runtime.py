"""Gauges describing the running Python process."""

import gc
import logging
import os
import threading
import time

from .registry import MetricRegistry

logger = logging.getLogger(__name__)


def register_runtime_gauges(registry: MetricRegistry, base: str = "runtime") -> None:
    """Register process-level gauges (uptime, threads, gc activity) under ``base``."""
    started = time.monotonic()

    registry.gauge(f"{base}.uptime_s", lambda: time.monotonic() - started)
    registry.gauge(f"{base}.threads.count", threading.active_count)
    registry.gauge(f"{base}.pid", os.getpid)

    for generation in range(len(gc.get_count())):
        registry.gauge(
            f"{base}.gc.gen{generation}.pending",
            lambda g=generation: gc.get_count()[g],
        )
        registry.gauge(
            f"{base}.gc.gen{generation}.collections",
            lambda g=generation: gc.get_stats()[g]["collections"],
        )

    logger.info(f"Registered runtime gauges under {base}")
