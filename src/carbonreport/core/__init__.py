"""Clock and scheduling core."""

from .clock import DEFAULT_CLOCK, Clock, ManualClock
from .reporting_environment import ReportingEnvironment

__all__ = ["Clock", "DEFAULT_CLOCK", "ManualClock", "ReportingEnvironment"]
