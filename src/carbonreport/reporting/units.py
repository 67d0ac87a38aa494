"""Rate and duration unit conversion."""

from enum import Enum


class TimeUnit(Enum):
    """Units of time, valued in nanoseconds."""

    NANOSECONDS = 1
    MICROSECONDS = 1_000
    MILLISECONDS = 1_000_000
    SECONDS = 1_000_000_000
    MINUTES = 60 * 1_000_000_000
    HOURS = 3_600 * 1_000_000_000
    DAYS = 86_400 * 1_000_000_000

    @property
    def nanos(self) -> int:
        return self.value

    @property
    def seconds(self) -> float:
        return self.value / 1_000_000_000

    @classmethod
    def parse(cls, text: str) -> "TimeUnit":
        """Parse a unit name such as ``"ms"``, ``"seconds"`` or ``"MINUTES"``.

        Raises:
            ValueError: for unknown unit names
        """
        key = text.strip().lower()
        unit = _ALIASES.get(key)
        if unit is None:
            raise ValueError(f"Unknown time unit: {text!r}")
        return unit


_ALIASES = {}
for _unit in TimeUnit:
    _name = _unit.name.lower()
    _ALIASES[_name] = _unit
    _ALIASES[_name.rstrip("s")] = _unit
_ALIASES.update({
    "ns": TimeUnit.NANOSECONDS,
    "us": TimeUnit.MICROSECONDS,
    "ms": TimeUnit.MILLISECONDS,
    "s": TimeUnit.SECONDS,
    "m": TimeUnit.MINUTES,
    "min": TimeUnit.MINUTES,
    "h": TimeUnit.HOURS,
    "d": TimeUnit.DAYS,
})


def duration_factor(unit: TimeUnit) -> float:
    """Multiplier taking a nanosecond duration into ``unit``."""
    return 1.0 / unit.nanos


def rate_factor(unit: TimeUnit) -> float:
    """Multiplier taking an events-per-second rate into events per ``unit``."""
    return unit.seconds
