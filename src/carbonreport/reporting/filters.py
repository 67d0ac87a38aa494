"""Per-field inclusion filters.

A filter is consulted once for every candidate field of every metric, with
the un-prefixed metric path, the metric object and the field name (``None``
for gauges, which have a single unnamed value). Because the decision is made
per field, a filter can drop e.g. only ``p999`` across all histograms and
timers while leaving every other field alone.
"""

from typing import Any, Callable, Optional, Protocol


class MetricFilter(Protocol):
    """Predicate deciding whether a single field is reported."""

    def matches(self, name: str, metric: Any, field: Optional[str]) -> bool:
        ...


class _PredicateFilter:
    """Filter backed by a plain function, with a readable repr."""

    def __init__(self, predicate: Callable[[str, Any, Optional[str]], bool], description: str):
        self._predicate = predicate
        self._description = description

    def matches(self, name: str, metric: Any, field: Optional[str]) -> bool:
        return bool(self._predicate(name, metric, field))

    def __repr__(self) -> str:
        return f"MetricFilter({self._description})"


ALL: MetricFilter = _PredicateFilter(lambda name, metric, field: True, "all")


def from_callable(fn: Callable[[str, Any, Optional[str]], bool]) -> MetricFilter:
    return _PredicateFilter(fn, getattr(fn, "__name__", "callable"))


def starts_with(prefix: str) -> MetricFilter:
    return _PredicateFilter(lambda name, metric, field: name.startswith(prefix), f"starts_with={prefix!r}")


def ends_with(suffix: str) -> MetricFilter:
    return _PredicateFilter(lambda name, metric, field: name.endswith(suffix), f"ends_with={suffix!r}")


def contains(text: str) -> MetricFilter:
    return _PredicateFilter(lambda name, metric, field: text in name, f"contains={text!r}")


def excluding_fields(*fields: str) -> MetricFilter:
    """Reject the named fields on every metric. Gauge values are never excluded."""
    excluded = frozenset(fields)
    return _PredicateFilter(
        lambda name, metric, field: field not in excluded,
        f"excluding_fields={sorted(excluded)}",
    )


def all_of(*filters: MetricFilter) -> MetricFilter:
    """Match only when every given filter matches."""
    return _PredicateFilter(
        lambda name, metric, field: all(f.matches(name, metric, field) for f in filters),
        "all_of(" + ", ".join(repr(f) for f in filters) + ")",
    )
