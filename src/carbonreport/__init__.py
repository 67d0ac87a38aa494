"""carbonreport: ship in-process metrics to Graphite over the Carbon plaintext protocol."""

from .core import Clock, ManualClock, ReportingEnvironment
from .metrics import MetricRegistry
from .reporting import CarbonReporter, ReporterConfig, TimeUnit, filters
from .transport import PlaintextSender, StreamSender

__version__ = "0.1.0"

__all__ = [
    "CarbonReporter",
    "Clock",
    "ManualClock",
    "MetricRegistry",
    "PlaintextSender",
    "ReporterConfig",
    "ReportingEnvironment",
    "StreamSender",
    "TimeUnit",
    "filters",
]
