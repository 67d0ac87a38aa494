"""Fixed field sets extracted from each metric kind."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional

from ..metrics.models import MetricKind


class FieldRole(Enum):
    """How a field value is scaled before formatting."""

    PLAIN = "plain"
    DURATION = "duration"
    RATE = "rate"


@dataclass(frozen=True)
class Field:
    """One reportable value of a metric. ``name`` is None for gauges."""

    name: Optional[str]
    value: Any
    role: FieldRole = FieldRole.PLAIN


HISTOGRAM_FIELDS = ("count", "max", "mean", "min", "stddev", "p50", "p75", "p95", "p98", "p99", "p999")
METERED_FIELDS = ("count", "m1_rate", "m5_rate", "m15_rate", "mean_rate")
TIMER_DURATION_FIELDS = ("max", "mean", "min", "stddev", "p50", "p75", "p95", "p98", "p99", "p999")

# Field name -> Snapshot attribute
SNAPSHOT_ACCESSORS = {
    "max": "max",
    "mean": "mean",
    "min": "min",
    "stddev": "stddev",
    "p50": "median",
    "p75": "p75",
    "p95": "p95",
    "p98": "p98",
    "p99": "p99",
    "p999": "p999",
}


def gauge_fields(gauge: Any) -> Iterator[Field]:
    yield Field(None, gauge.value)


def counter_fields(counter: Any) -> Iterator[Field]:
    yield Field("count", counter.count)


def histogram_fields(histogram: Any) -> Iterator[Field]:
    snapshot = histogram.snapshot()
    yield Field("count", histogram.count)
    for name in HISTOGRAM_FIELDS[1:]:
        yield Field(name, getattr(snapshot, SNAPSHOT_ACCESSORS[name]))


def metered_fields(metered: Any) -> Iterator[Field]:
    yield Field("count", metered.count)
    for name in METERED_FIELDS[1:]:
        yield Field(name, getattr(metered, name), FieldRole.RATE)


def timer_fields(timer: Any) -> Iterator[Field]:
    snapshot = timer.snapshot()
    for name in TIMER_DURATION_FIELDS:
        yield Field(name, getattr(snapshot, SNAPSHOT_ACCESSORS[name]), FieldRole.DURATION)
    yield from metered_fields(timer)


FIELD_EXTRACTORS: Dict[MetricKind, Callable[[Any], Iterator[Field]]] = {
    MetricKind.GAUGE: gauge_fields,
    MetricKind.COUNTER: counter_fields,
    MetricKind.HISTOGRAM: histogram_fields,
    MetricKind.METER: metered_fields,
    MetricKind.TIMER: timer_fields,
}

# Order in which kinds are reported within one cycle
REPORT_ORDER = (
    MetricKind.GAUGE,
    MetricKind.COUNTER,
    MetricKind.HISTOGRAM,
    MetricKind.METER,
    MetricKind.TIMER,
)


def extract_fields(kind: MetricKind, metric: Any) -> Iterator[Field]:
    """Yield the fixed field set of ``metric`` as a metric of ``kind``."""
    return FIELD_EXTRACTORS[kind](metric)
