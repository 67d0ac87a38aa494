"""Reporter that ships a registry to a Carbon collector once per tick."""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..core.clock import DEFAULT_CLOCK, Clock
from ..metrics.models import MetricKind, RegistrySnapshot
from ..transport.errors import CloseError, TransportError
from ..transport.sender import Sender
from . import filters
from .fields import REPORT_ORDER, FieldRole, extract_fields
from .filters import MetricFilter
from .formatting import format_value, metric_name
from .units import TimeUnit, duration_factor, rate_factor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReporterConfig:
    """Immutable reporter settings. Defaults match an unconfigured reporter."""

    clock: Clock = DEFAULT_CLOCK
    prefix: Optional[str] = None
    rate_unit: TimeUnit = TimeUnit.SECONDS
    duration_unit: TimeUnit = TimeUnit.MILLISECONDS
    filter: MetricFilter = field(default=filters.ALL)


class CarbonReporter:
    """Converts registry snapshots into Carbon plaintext lines.

    ``report()`` is meant to be called by a scheduler at a fixed period and
    never raises: a failed cycle is logged, the sender is closed, and the next
    cycle reconnects lazily. ``stop()`` closes the sender
    exactly once for the reporter's lifetime.
    """

    def __init__(self, registry: Any, sender: Sender, config: Optional[ReporterConfig] = None):
        """Initialize the reporter.

        Args:
            registry: Object whose ``snapshot()`` returns a RegistrySnapshot
            sender: Transport used to reach the collector
            config: Reporter settings, defaults when omitted
        """
        self.registry = registry
        self.sender = sender
        self.config = config or ReporterConfig()
        self._duration_factor = duration_factor(self.config.duration_unit)
        self._rate_factor = rate_factor(self.config.rate_unit)
        self._stopped = False
        self._environment = None

        logger.info(
            f"CarbonReporter initialized (prefix={self.config.prefix!r}, "
            f"rates per {self.config.rate_unit.name.lower()}, "
            f"durations in {self.config.duration_unit.name.lower()})"
        )

    def report(self) -> None:
        """Report the current state of the registry. Entry point for schedulers."""
        self.report_snapshot(self.registry.snapshot())

    def report_metrics(
        self,
        gauges: Mapping[str, Any],
        counters: Mapping[str, Any],
        histograms: Mapping[str, Any],
        meters: Mapping[str, Any],
        timers: Mapping[str, Any],
    ) -> None:
        """Report explicit path-ordered mappings, one per metric kind."""
        self.report_snapshot(RegistrySnapshot(
            gauges=dict(gauges),
            counters=dict(counters),
            histograms=dict(histograms),
            meters=dict(meters),
            timers=dict(timers),
        ))

    def report_snapshot(self, snapshot: RegistrySnapshot) -> None:
        """Run one reporting cycle over ``snapshot``."""
        timestamp = self.config.clock.time() // 1000

        try:
            if not self.sender.is_connected():
                self.sender.connect()

            sent = 0
            for kind in REPORT_ORDER:
                for name, metric in snapshot.of_kind(kind).items():
                    sent += self._report_metric(kind, name, metric, timestamp)

            self.sender.flush()
            logger.debug(f"Reported {sent} values at {timestamp}")
        except TransportError as e:
            logger.warning(f"Unable to report to collector via {self.sender!r}: {e}")
            self._close_after_failure()
        except Exception:
            logger.exception(f"Unable to read metrics for report at {timestamp}")
            self._close_after_failure()

    def _close_after_failure(self) -> None:
        """Close the sender once, dropping whatever the failed cycle buffered."""
        try:
            self.sender.close()
        except CloseError as close_error:
            logger.info(f"Error closing {self.sender!r} after failed report: {close_error}")

    def _report_metric(self, kind: MetricKind, name: str, metric: Any, timestamp: int) -> int:
        """Send every field of one metric that passes the filter. Returns the lines sent."""
        sent = 0
        for field_ in extract_fields(kind, metric):
            if not self.config.filter.matches(name, metric, field_.name):
                continue

            value = field_.value
            if field_.role is FieldRole.DURATION:
                value = value * self._duration_factor
            elif field_.role is FieldRole.RATE:
                value = value * self._rate_factor

            formatted = format_value(value)
            if formatted is None:
                if kind is MetricKind.GAUGE:
                    logger.debug(f"Skipping gauge {name} with unreportable value {value!r}")
                continue

            self.sender.send(metric_name(self.config.prefix, name, field_.name), formatted, timestamp)
            sent += 1
        return sent

    def start(self, environment: Any, period_s: float) -> None:
        """Schedule ``report()`` every ``period_s`` seconds on a ReportingEnvironment."""
        self._environment = environment
        environment.schedule_reporter(self, period_s)

    def stop(self) -> None:
        """Stop the schedule and release the sender.

        The sender is closed even when stopping the schedule fails. Safe to
        call more than once; only the first call does anything.
        """
        if self._stopped:
            return
        self._stopped = True

        try:
            if self._environment is not None:
                self._environment.stop()
        finally:
            try:
                self.sender.close()
            except CloseError as e:
                logger.debug(f"Error disconnecting from collector via {self.sender!r}: {e}")
        logger.info("CarbonReporter stopped")

    def __enter__(self) -> "CarbonReporter":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()
