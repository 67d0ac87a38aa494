"""Orchestrator wiring settings, registry, sender, reporter and schedule together."""

import logging
from typing import IO, Any, Dict, Optional

from ..core import DEFAULT_CLOCK, Clock, ReportingEnvironment
from ..metrics import MetricRegistry, register_runtime_gauges
from ..reporting import CarbonReporter
from ..transport import PlaintextSender, Sender, StreamSender
from ..utils.config_validator import (
    ConfigurationError,
    Settings,
    SettingsValidator,
    build_reporter_config,
    load_config_file,
)

logger = logging.getLogger(__name__)


class ReporterOrchestrator:
    """Main entry point to build and run a reporter from a settings mapping."""

    def __init__(
        self,
        config_data: Dict[str, Any],
        registry: Optional[MetricRegistry] = None,
        clock: Clock = DEFAULT_CLOCK,
    ):
        """Initialize the orchestrator.

        Args:
            config_data: Settings mapping (see Settings)
            registry: Registry to report, a fresh one when omitted
            clock: Clock used for report timestamps
        """
        is_valid, errors, settings = SettingsValidator.validate(config_data)
        if not is_valid:
            raise ConfigurationError("; ".join(errors))

        self.settings: Settings = settings
        self.clock = clock
        self.registry = registry if registry is not None else MetricRegistry(clock)

        # Initialized in setup_reporter
        self.sender: Optional[Sender] = None
        self.reporter: Optional[CarbonReporter] = None
        self.environment: Optional[ReportingEnvironment] = None

        logger.info("ReporterOrchestrator initialized")

    def setup_reporter(self, dry_run_stream: Optional[IO[str]] = None) -> CarbonReporter:
        """Create the sender and reporter. A dry-run stream replaces the TCP sender."""
        if self.reporter is not None:
            return self.reporter

        if self.settings.reporter.include_runtime_metrics:
            register_runtime_gauges(self.registry)

        if dry_run_stream is not None:
            self.sender = StreamSender(dry_run_stream)
        else:
            collector = self.settings.collector
            self.sender = PlaintextSender(collector.host, collector.port, collector.timeout_s)

        self.reporter = CarbonReporter(
            self.registry,
            self.sender,
            build_reporter_config(self.settings.reporter, self.clock),
        )
        logger.info(f"Reporter set up with {self.sender!r}")
        return self.reporter

    def report_once(self, dry_run_stream: Optional[IO[str]] = None) -> None:
        """Run a single reporting cycle and release the sender."""
        with self.setup_reporter(dry_run_stream) as reporter:
            reporter.report()

    def run(
        self,
        duration_s: Optional[float] = None,
        realtime: bool = True,
        dry_run_stream: Optional[IO[str]] = None,
    ) -> None:
        """Report on a fixed period until ``duration_s`` elapses or the run is interrupted."""
        reporter = self.setup_reporter(dry_run_stream)
        self.environment = ReportingEnvironment({"realtime": realtime})

        period_s = self.settings.reporter.period_s
        logger.info("=" * 60)
        logger.info(f"REPORTING EVERY {period_s}s TO {self.sender!r}")
        logger.info("=" * 60)

        try:
            reporter.start(self.environment, period_s)
            self.environment.run(until=duration_s)
        finally:
            reporter.stop()

    @classmethod
    def from_config_file(cls, config_path: str, **kwargs) -> "ReporterOrchestrator":
        """Create an orchestrator from a YAML or JSON settings file."""
        return cls(load_config_file(config_path), **kwargs)
