"""Wire formatting of metric paths and values."""

import math
from typing import Optional, Union

import numpy as np

Number = Union[int, float]


def as_number(value) -> Optional[Number]:
    """Narrow a raw value to the {integral, floating-point} pair.

    Anything else (text, booleans, None, decimals, containers) maps to None,
    meaning the value is never emitted.
    """
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return float(value)
    return None


def format_value(value) -> Optional[str]:
    """Render a value for the wire, or None when it must not be sent.

    Integers render as plain base-10 text; floats render with exactly two
    decimals. NaN and non-numeric values yield None.
    """
    number = as_number(value)
    if number is None:
        return None
    if isinstance(number, int):
        return str(number)
    if math.isnan(number):
        return None
    # %-formatting never consults the locale
    return "%.2f" % number


def metric_name(*parts: Optional[str]) -> str:
    """Join the present path components with dots, skipping None and empty parts."""
    return ".".join(part for part in parts if part)
