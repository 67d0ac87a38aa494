"""
Unit tests for the reporting cycle.
"""

import logging
import socket
from decimal import Decimal

import numpy as np
import pytest

from carbonreport.core.clock import ManualClock
from carbonreport.metrics import Counter, Gauge, MetricRegistry, Snapshot
from carbonreport.reporting import CarbonReporter, ReporterConfig, TimeUnit, filters
from carbonreport.transport import PlaintextSender, plaintext
from carbonreport.transport.errors import CloseError, CollectorConnectionError, TransmissionError

NOW_MS = 1_700_000_000_123
NOW_S = 1_700_000_000


class RecordingSender:
    """Sender that records wire lines and can fail on demand."""

    def __init__(self, fail_connect=False, fail_send_at=None, fail_flush=False, fail_close=False):
        self.fail_connect = fail_connect
        self.fail_send_at = fail_send_at
        self.fail_flush = fail_flush
        self.fail_close = fail_close
        self.connected = False
        self.lines = []
        self.connect_calls = 0
        self.flush_calls = 0
        self.close_calls = 0

    def is_connected(self):
        return self.connected

    def connect(self):
        self.connect_calls += 1
        if self.fail_connect:
            raise CollectorConnectionError("connection refused")
        self.connected = True

    def send(self, path, value, timestamp):
        if self.fail_send_at is not None and len(self.lines) == self.fail_send_at:
            raise TransmissionError("broken pipe")
        self.lines.append((path, value, timestamp))

    def flush(self):
        self.flush_calls += 1
        if self.fail_flush:
            raise TransmissionError("flush failed")

    def close(self):
        self.close_calls += 1
        self.connected = False
        if self.fail_close:
            raise CloseError("close failed")

    def values(self):
        return {path: value for path, value, _ in self.lines}


class StaticHistogram:
    def __init__(self, count, snapshot):
        self.count = count
        self._snapshot = snapshot

    def snapshot(self):
        return self._snapshot


class StaticMeter:
    def __init__(self, count, m1_rate=1.0, m5_rate=2.0, m15_rate=3.0, mean_rate=4.0):
        self.count = count
        self.m1_rate = m1_rate
        self.m5_rate = m5_rate
        self.m15_rate = m15_rate
        self.mean_rate = mean_rate


class StaticTimer(StaticMeter):
    def __init__(self, count, snapshot, **rates):
        super().__init__(count, **rates)
        self._snapshot = snapshot

    def snapshot(self):
        return self._snapshot


def make_counter(n):
    counter = Counter()
    counter.inc(n)
    return counter


HISTOGRAM_SNAPSHOT = Snapshot(
    size=4, max=10, min=1, mean=5.5, stddev=2.25, median=5.0,
    p75=7.0, p95=9.0, p98=9.5, p99=9.75, p999=9.99,
)

TIMER_SNAPSHOT = Snapshot(
    size=3, max=2_000_000_000, min=500_000_000, mean=1_250_000_000.0, stddev=100_000_000.0,
    median=1_000_000_000.0, p75=1_500_000_000.0, p95=1_900_000_000.0,
    p98=1_950_000_000.0, p99=1_990_000_000.0, p999=1_999_000_000.0,
)


def make_reporter(sender=None, **config):
    config.setdefault("clock", ManualClock(time_ms=NOW_MS))
    return CarbonReporter(MetricRegistry(), sender or RecordingSender(), ReporterConfig(**config))


def report(reporter, gauges=None, counters=None, histograms=None, meters=None, timers=None):
    reporter.report_metrics(gauges or {}, counters or {}, histograms or {}, meters or {}, timers or {})


def read_all(connection):
    chunks = []
    while True:
        data = connection.recv(4096)
        if not data:
            break
        chunks.append(data)
    return b"".join(chunks).decode("ascii")


class TestFieldExtraction:
    """Test the fixed field sets emitted per metric kind."""

    def test_prefixed_gauge_and_counter_paths(self):
        """Test gauges have no suffix and counters emit a count field."""
        sender = RecordingSender()
        reporter = make_reporter(sender, prefix="app")

        report(reporter, gauges={"requests": Gauge(lambda: 3)}, counters={"requests": make_counter(7)})

        assert sender.lines == [
            ("app.requests", "3", NOW_S),
            ("app.requests.count", "7", NOW_S),
        ]

    def test_no_prefix(self):
        """Test paths are not dotted when no prefix is configured."""
        sender = RecordingSender()
        report(make_reporter(sender), gauges={"requests": Gauge(lambda: 3)})

        assert sender.lines == [("requests", "3", NOW_S)]

    def test_histogram_values(self):
        """Test integral fields render plainly and floating fields with two decimals."""
        sender = RecordingSender()
        report(make_reporter(sender), histograms={"sizes": StaticHistogram(4, HISTOGRAM_SNAPSHOT)})

        assert [path for path, _, _ in sender.lines] == [
            "sizes.count", "sizes.max", "sizes.mean", "sizes.min", "sizes.stddev",
            "sizes.p50", "sizes.p75", "sizes.p95", "sizes.p98", "sizes.p99", "sizes.p999",
        ]
        values = sender.values()
        assert values["sizes.count"] == "4"
        assert values["sizes.max"] == "10"
        assert values["sizes.min"] == "1"
        assert values["sizes.mean"] == "5.50"
        assert values["sizes.p50"] == "5.00"
        assert values["sizes.p999"] == "9.99"

    def test_histogram_fields_are_not_unit_converted(self):
        """Test histograms ignore the duration unit."""
        sender = RecordingSender()
        report(
            make_reporter(sender, duration_unit=TimeUnit.SECONDS),
            histograms={"sizes": StaticHistogram(4, HISTOGRAM_SNAPSHOT)},
        )

        assert sender.values()["sizes.mean"] == "5.50"

    def test_meter_fields(self):
        """Test meters emit count and four rates."""
        sender = RecordingSender()
        report(make_reporter(sender), meters={"hits": StaticMeter(12)})

        assert sender.lines == [
            ("hits.count", "12", NOW_S),
            ("hits.m1_rate", "1.00", NOW_S),
            ("hits.m5_rate", "2.00", NOW_S),
            ("hits.m15_rate", "3.00", NOW_S),
            ("hits.mean_rate", "4.00", NOW_S),
        ]

    def test_timer_fields(self):
        """Test timers emit durations first, then metered fields."""
        sender = RecordingSender()
        report(make_reporter(sender), timers={"db": StaticTimer(3, TIMER_SNAPSHOT)})

        assert [path for path, _, _ in sender.lines] == [
            "db.max", "db.mean", "db.min", "db.stddev", "db.p50", "db.p75", "db.p95",
            "db.p98", "db.p99", "db.p999",
            "db.count", "db.m1_rate", "db.m5_rate", "db.m15_rate", "db.mean_rate",
        ]
        values = sender.values()
        assert values["db.max"] == "2000.00"
        assert values["db.min"] == "500.00"
        assert values["db.count"] == "3"

    def test_kind_and_path_order(self):
        """Test kinds are reported gauges first, timers last, each in path order."""
        sender = RecordingSender()
        report(
            make_reporter(sender),
            gauges={"a": Gauge(lambda: 1), "b": Gauge(lambda: 2)},
            counters={"c": make_counter(1)},
            histograms={"d": StaticHistogram(1, HISTOGRAM_SNAPSHOT)},
            meters={"e": StaticMeter(1)},
            timers={"f": StaticTimer(1, TIMER_SNAPSHOT)},
        )

        first_segments = []
        for path, _, _ in sender.lines:
            head = path.split(".")[0]
            if not first_segments or first_segments[-1] != head:
                first_segments.append(head)
        assert first_segments == ["a", "b", "c", "d", "e", "f"]


class TestUnitConversion:
    """Test rate and duration scaling of timer and meter fields."""

    def test_duration_unit_scales_by_thousand(self):
        """Test seconds vs milliseconds differ by a factor of 1000 and rates do not change."""
        ms_sender = RecordingSender()
        s_sender = RecordingSender()
        timer = StaticTimer(3, TIMER_SNAPSHOT, m1_rate=1.5)

        report(make_reporter(ms_sender, duration_unit=TimeUnit.MILLISECONDS), timers={"db": timer})
        report(make_reporter(s_sender, duration_unit=TimeUnit.SECONDS), timers={"db": timer})

        ms_values = ms_sender.values()
        s_values = s_sender.values()
        assert ms_values["db.max"] == "2000.00"
        assert s_values["db.max"] == "2.00"
        assert ms_values["db.mean"] == "1250.00"
        assert s_values["db.mean"] == "1.25"
        assert ms_values["db.m1_rate"] == s_values["db.m1_rate"] == "1.50"

    def test_rate_unit_per_minute(self):
        """Test rates per minute are sixty times rates per second."""
        sender = RecordingSender()
        report(
            make_reporter(sender, rate_unit=TimeUnit.MINUTES),
            meters={"hits": StaticMeter(5, m1_rate=1.5)},
        )

        values = sender.values()
        assert values["hits.m1_rate"] == "90.00"
        assert values["hits.count"] == "5"


class TestNaNAndGaugeValues:
    """Test values that must never reach the wire."""

    @pytest.mark.parametrize("metric_filter", [
        filters.ALL,
        filters.excluding_fields("p999"),
        filters.starts_with("sizes"),
    ])
    def test_nan_fields_are_skipped(self, metric_filter):
        """Test NaN fields emit nothing under any filter."""
        snapshot = Snapshot(size=1, max=1, min=1, mean=float("nan"), stddev=float("nan"), median=1.0)
        sender = RecordingSender()
        report(
            make_reporter(sender, filter=metric_filter),
            gauges={"sizes.ratio": Gauge(lambda: float("nan"))},
            histograms={"sizes": StaticHistogram(1, snapshot)},
        )

        paths = [path for path, _, _ in sender.lines]
        assert "sizes.ratio" not in paths
        assert "sizes.mean" not in paths
        assert "sizes.stddev" not in paths
        assert "sizes.max" in paths
        assert all(value != "nan" for _, value, _ in sender.lines)

    @pytest.mark.parametrize("value", ["text", None, True, Decimal("1.5"), [1, 2], {"a": 1}])
    def test_unsupported_gauge_values_are_skipped(self, value):
        """Test gauges holding non-numeric values are silently skipped."""
        sender = RecordingSender()
        report(make_reporter(sender), gauges={"odd": Gauge(lambda: value), "ok": Gauge(lambda: 2)})

        assert sender.lines == [("ok", "2", NOW_S)]
        assert sender.close_calls == 0

    def test_numpy_gauge_values(self):
        """Test numpy scalars are treated as integral or floating values."""
        sender = RecordingSender()
        report(
            make_reporter(sender),
            gauges={"a": Gauge(lambda: np.int32(5)), "b": Gauge(lambda: np.float32(0.25))},
        )

        assert sender.values() == {"a": "5", "b": "0.25"}


class TestTimestamp:
    """Test a cycle shares one timestamp."""

    def test_single_timestamp_per_cycle(self):
        """Test the clock is read once even if time moves during the cycle."""
        clock = ManualClock(time_ms=NOW_MS)
        sender = RecordingSender()
        reporter = make_reporter(sender, clock=clock)

        def moving_gauge():
            clock.advance(30)
            return 1

        report(
            reporter,
            gauges={"a": Gauge(moving_gauge), "b": Gauge(moving_gauge)},
            meters={"c": StaticMeter(1)},
        )

        assert {timestamp for _, _, timestamp in sender.lines} == {NOW_S}

        report(reporter, gauges={"a": Gauge(lambda: 1)})
        assert sender.lines[-1][2] == NOW_S + 60


class TestFilter:
    """Test per-field filtering during a cycle."""

    def test_excluding_p999_only(self):
        """Test rejecting p999 drops it from histograms and timers and nothing else."""
        unfiltered = RecordingSender()
        filtered = RecordingSender()
        metrics = dict(
            gauges={"g": Gauge(lambda: 1)},
            counters={"c": make_counter(1)},
            histograms={"h": StaticHistogram(4, HISTOGRAM_SNAPSHOT)},
            meters={"m": StaticMeter(1)},
            timers={"t": StaticTimer(3, TIMER_SNAPSHOT)},
        )

        report(make_reporter(unfiltered), **metrics)
        report(make_reporter(filtered, filter=filters.excluding_fields("p999")), **metrics)

        removed = set(unfiltered.lines) - set(filtered.lines)
        assert {path for path, _, _ in removed} == {"h.p999", "t.p999"}
        assert len(filtered.lines) == len(unfiltered.lines) - 2

    def test_filter_sees_unprefixed_name_metric_and_field(self):
        """Test the filter is called once per field with the base path."""
        calls = []
        counter = make_counter(1)

        def record(name, metric, field):
            calls.append((name, metric, field))
            return field != "count"

        sender = RecordingSender()
        report(
            make_reporter(sender, prefix="app", filter=filters.from_callable(record)),
            gauges={"g": Gauge(lambda: 1)},
            counters={"c": counter},
        )

        assert calls[1] == ("c", counter, "count")
        assert [call[2] for call in calls] == [None, "count"]
        assert sender.lines == [("app.g", "1", NOW_S)]


class TestFaultContainment:
    """Test transport and metric failures never escape a cycle."""

    def test_connects_when_disconnected(self):
        """Test the sender is connected lazily and flushed once."""
        sender = RecordingSender()
        report(make_reporter(sender), gauges={"g": Gauge(lambda: 1)})

        assert sender.connect_calls == 1
        assert sender.flush_calls == 1
        assert sender.close_calls == 0

    def test_transmission_failure_mid_cycle(self):
        """Test nothing after the failure is sent and close is called exactly once."""
        sender = RecordingSender(fail_send_at=2)
        report(
            make_reporter(sender),
            gauges={"a": Gauge(lambda: 1), "b": Gauge(lambda: 2), "c": Gauge(lambda: 3)},
            counters={"d": make_counter(4)},
        )

        assert [path for path, _, _ in sender.lines] == ["a", "b"]
        assert sender.close_calls == 1
        assert sender.flush_calls == 0

    def test_connection_failure_aborts_cycle(self):
        """Test a refused connection sends nothing and still closes once."""
        sender = RecordingSender(fail_connect=True)
        report(make_reporter(sender), gauges={"a": Gauge(lambda: 1)})

        assert sender.lines == []
        assert sender.close_calls == 1

    def test_flush_failure_is_contained(self):
        """Test a failing flush closes the sender without raising."""
        sender = RecordingSender(fail_flush=True)
        report(make_reporter(sender), gauges={"a": Gauge(lambda: 1)})

        assert sender.close_calls == 1

    def test_next_cycle_reconnects(self):
        """Test a failed cycle does not prevent the next one."""
        sender = RecordingSender(fail_send_at=0)
        reporter = make_reporter(sender)
        report(reporter, gauges={"a": Gauge(lambda: 1)})

        sender.fail_send_at = None
        report(reporter, gauges={"a": Gauge(lambda: 1)})

        assert sender.connect_calls == 2
        assert sender.lines == [("a", "1", NOW_S)]

    def test_close_failure_does_not_mask_original(self, caplog):
        """Test the primary failure is logged before and apart from the close failure."""
        sender = RecordingSender(fail_send_at=0, fail_close=True)

        with caplog.at_level(logging.DEBUG, logger="carbonreport.reporting.reporter"):
            report(make_reporter(sender), gauges={"a": Gauge(lambda: 1)})

        records = [r for r in caplog.records if r.name == "carbonreport.reporting.reporter" and r.levelno >= logging.INFO]
        failures = [r for r in records if "broken pipe" in r.getMessage() or "close failed" in r.getMessage()]
        assert [r.levelno for r in failures] == [logging.WARNING, logging.INFO]
        assert "broken pipe" in failures[0].getMessage()
        assert "close failed" not in failures[0].getMessage()
        assert sender.close_calls == 1

    def test_failing_gauge_is_contained(self, caplog):
        """Test an exception reading a metric is logged with its traceback and closes the sender once."""
        def broken():
            raise RuntimeError("gauge broke")

        sender = RecordingSender()
        with caplog.at_level(logging.ERROR, logger="carbonreport.reporting.reporter"):
            report(make_reporter(sender), gauges={"a": Gauge(lambda: 1), "b": Gauge(broken)})

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert errors[0].exc_info is not None
        assert sender.flush_calls == 0
        assert sender.close_calls == 1

    def test_failing_gauge_lines_are_not_sent_next_cycle(self, monkeypatch):
        """Test a cycle that failed reading a metric loses its lines over TCP."""
        pairs = [socket.socketpair(), socket.socketpair()]
        connections = [client for client, _ in pairs]
        monkeypatch.setattr(plaintext.socket, "create_connection", lambda address, timeout=None: connections.pop(0))

        clock = ManualClock(time_ms=1_000_000)
        sender = PlaintextSender("collector", 2003)
        reporter = CarbonReporter(MetricRegistry(), sender, ReporterConfig(clock=clock))
        gauge_broken = True

        def b():
            if gauge_broken:
                raise RuntimeError("gauge broke")
            return 2

        gauges = {"a": Gauge(lambda: 1), "b": Gauge(b)}
        try:
            report(reporter, gauges=gauges)
            assert not sender.is_connected()

            gauge_broken = False
            clock.advance(60)
            report(reporter, gauges=gauges)
            reporter.stop()

            first_peer, second_peer = pairs[0][1], pairs[1][1]
            first_peer.settimeout(5)
            second_peer.settimeout(5)
            assert read_all(first_peer) == ""
            assert read_all(second_peer) == "a 1 1060\nb 2 1060\n"
        finally:
            for client, peer in pairs:
                client.close()
                peer.close()

    def test_report_reads_registry_snapshot(self):
        """Test report() reports what the registry holds."""
        registry = MetricRegistry()
        registry.counter("jobs").inc(2)
        registry.gauge("depth", lambda: 7)
        sender = RecordingSender()
        reporter = CarbonReporter(registry, sender, ReporterConfig(clock=ManualClock(time_ms=NOW_MS)))

        reporter.report()

        assert sender.lines == [("depth", "7", NOW_S), ("jobs.count", "2", NOW_S)]


class FailingEnvironment:
    def __init__(self):
        self.scheduled = []

    def schedule_reporter(self, reporter, period_s):
        self.scheduled.append(period_s)

    def stop(self):
        raise RuntimeError("scheduler broke")


class TestStop:
    """Test reporter shutdown."""

    def test_stop_closes_exactly_once(self):
        """Test repeated stops close only once."""
        sender = RecordingSender()
        reporter = make_reporter(sender)

        reporter.stop()
        reporter.stop()

        assert sender.close_calls == 1

    def test_stop_swallows_close_error(self):
        """Test a failing close during shutdown is not raised."""
        sender = RecordingSender(fail_close=True)
        make_reporter(sender).stop()

        assert sender.close_calls == 1

    def test_stop_closes_even_if_schedule_stop_fails(self):
        """Test the sender is released when stopping the schedule raises."""
        sender = RecordingSender()
        reporter = make_reporter(sender)
        environment = FailingEnvironment()
        reporter.start(environment, 10)

        with pytest.raises(RuntimeError):
            reporter.stop()

        assert environment.scheduled == [10]
        assert sender.close_calls == 1

    def test_context_manager_stops(self):
        """Test leaving a with block stops the reporter."""
        sender = RecordingSender()
        with make_reporter(sender) as reporter:
            report(reporter, gauges={"a": Gauge(lambda: 1)})

        assert sender.close_calls == 1
