"""Reporting cycle: field extraction, filtering, unit conversion and formatting."""

from . import filters
from .fields import Field, FieldRole, extract_fields
from .filters import MetricFilter
from .formatting import format_value, metric_name
from .reporter import CarbonReporter, ReporterConfig
from .units import TimeUnit

__all__ = [
    "CarbonReporter",
    "Field",
    "FieldRole",
    "MetricFilter",
    "ReporterConfig",
    "TimeUnit",
    "extract_fields",
    "filters",
    "format_value",
    "metric_name",
]
