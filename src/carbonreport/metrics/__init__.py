"""Metric kinds and the registry the reporter reads from."""

from .models import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    MetricKind,
    RegistrySnapshot,
    Snapshot,
    Timer,
)
from .registry import MetricRegistry
from .runtime import register_runtime_gauges

__all__ = [
    "Counter",
    "Gauge",
    "Histogram",
    "Meter",
    "MetricKind",
    "MetricRegistry",
    "RegistrySnapshot",
    "Snapshot",
    "Timer",
    "register_runtime_gauges",
]
