"""Periodic scheduling of reporting cycles on top of SimPy."""

import logging
from typing import Any, Callable, Dict, Optional

import simpy
import simpy.rt

logger = logging.getLogger(__name__)


class ReportingEnvironment:
    """Wrapper around a SimPy environment that fires reporting cycles at a fixed period.

    In real-time mode one simulated second is one wall-clock second, so the
    same process definition drives production schedules and deterministic
    virtual-time tests.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the environment.

        Args:
            config: Scheduling configuration containing:
                - realtime (optional): Follow the wall clock (default True)
                - factor (optional): Wall-clock seconds per simulated second
                - max_duration_s (optional): Stop running after this many seconds
        """
        self.config: Dict[str, Any] = config or {}
        self.realtime = self.config.get("realtime", True)

        if self.realtime:
            self.env: simpy.Environment = simpy.rt.RealtimeEnvironment(
                factor=self.config.get("factor", 1.0), strict=False
            )
        else:
            self.env = simpy.Environment()
        self.active_processes: list = []

        logger.info(f"ReportingEnvironment initialized (realtime={self.realtime})")

    def schedule_process(self, process_generator_func: Callable, *args, **kwargs) -> simpy.Process:
        """Schedule a SimPy process (a generator function).

        Returns:
            The SimPy Process object
        """
        process = self.env.process(process_generator_func(*args, **kwargs))
        self.active_processes.append(process)
        logger.debug(f"Scheduled process: {process_generator_func.__name__}")
        return process

    def schedule_reporter(self, reporter: Any, period_s: float) -> simpy.Process:
        """Call ``reporter.report()`` every ``period_s`` seconds, first after one period."""
        if period_s <= 0:
            raise ValueError(f"Reporting period must be positive, got {period_s}")
        return self.schedule_process(self._report_loop, reporter, period_s)

    def _report_loop(self, reporter: Any, period_s: float):
        while True:
            try:
                yield self.env.timeout(period_s)
            except simpy.Interrupt as interrupt:
                logger.info(f"Reporting loop stopped at {self.env.now}: {interrupt.cause}")
                return

            try:
                reporter.report()
            except Exception:
                # A broken cycle must never end the schedule
                logger.exception(f"Unexpected error during reporting cycle at {self.env.now}")

    def stop(self) -> None:
        """Interrupt every scheduled process that is still alive."""
        for process in self.active_processes:
            if process.is_alive:
                process.interrupt("stop requested")
        self.active_processes = []

    def run(self, until: Optional[float] = None) -> None:
        """Run scheduled processes until ``until`` (or ``max_duration_s``) or forever."""
        if until is None:
            until = self.config.get("max_duration_s")

        logger.info(f"Starting reporting schedule (until: {until if until is not None else 'stopped'})")

        try:
            self.env.run(until=until)
        except Exception as e:
            logger.error(f"Error in reporting schedule at time {self.env.now}: {e}")
            raise
        finally:
            logger.info(f"Reporting schedule ended at time {self.env.now}")

    def now(self) -> float:
        """Current environment time in seconds."""
        return self.env.now
