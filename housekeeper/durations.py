"""Duration strings as used in job metadata and config.

Go-style durations ("1h30m", "250ms", "-1.5h") extended with days and weeks
("2d", "1w2d12h"). A day is always 24h and a week always 7d; there is no
calendar arithmetic here.
"""

from __future__ import annotations

import re
from datetime import timedelta

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
    "w": 604800.0,
}

# Longer unit names first so "ms" never matches as "m" + junk.
_GROUP = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h|d|w)")


class DurationError(ValueError):
    pass


def parse_duration(value: str) -> timedelta:
    """Parse a duration string into a timedelta.

    Raises DurationError for empty input, a number without a unit, an unknown
    unit, or trailing garbage.
    """
    if value is None:
        raise DurationError("invalid duration: None")
    s = str(value).strip()
    orig = s
    if not s:
        raise DurationError("invalid duration: empty string")

    sign = 1.0
    if s[0] in "+-":
        if s[0] == "-":
            sign = -1.0
        s = s[1:]

    if s == "0":
        return timedelta(0)
    if not s:
        raise DurationError(f"invalid duration: {orig!r}")

    total = 0.0
    pos = 0
    while pos < len(s):
        m = _GROUP.match(s, pos)
        if not m:
            raise DurationError(f"invalid duration: {orig!r}")
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()

    try:
        return timedelta(seconds=sign * total)
    except OverflowError as e:
        raise DurationError(f"duration out of range: {orig!r}") from e


def format_duration(td: timedelta) -> str:
    """Compact rendering for logs, e.g. 90061s -> '1d1h1m1s'."""
    total = td.total_seconds()
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)

    parts = []
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60)):
        n = int(total // size)
        if n:
            parts.append(f"{n}{unit}")
            total -= n * size
    if total:
        secs = f"{total:.3f}".rstrip("0").rstrip(".")
        parts.append(f"{secs}s")
    return sign + "".join(parts)
