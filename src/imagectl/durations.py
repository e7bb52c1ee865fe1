"""Duration strings such as ``5m``, ``1m30s`` or ``300ms``.

Build files use the compact duration grammar shared with the rest of the
Packer ecosystem: an optional sign followed by one or more ``<number><unit>``
groups. ``0`` on its own is also accepted.
"""
from __future__ import annotations

import re
from datetime import timedelta

_UNITS_IN_MICROSECONDS = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60_000_000.0,
    "h": 3_600_000_000.0,
}

_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_UNIT = re.compile(r"[^\d.]+")


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


def parse_duration(text: str) -> timedelta:
    """Parse *text* into a :class:`~datetime.timedelta`."""
    if not isinstance(text, str):
        raise DurationError(f"duration must be a string, got {type(text).__name__}")
    raw = text.strip()
    if not raw:
        raise DurationError("invalid duration ''")

    sign = 1
    body = raw
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return timedelta(0)
    if not body:
        raise DurationError(f"invalid duration {text!r}")

    total = 0.0
    position = 0
    while position < len(body):
        number = _NUMBER.match(body, position)
        if number is None:
            raise DurationError(f"invalid duration {text!r}")
        unit = _UNIT.match(body, number.end())
        if unit is None:
            raise DurationError(f"missing unit in duration {text!r}")
        scale = _UNITS_IN_MICROSECONDS.get(unit.group())
        if scale is None:
            raise DurationError(f"unknown unit {unit.group()!r} in duration {text!r}")
        total += float(number.group()) * scale
        position = unit.end()
    try:
        return timedelta(microseconds=sign * total)
    except OverflowError as exc:
        raise DurationError(f"duration {text!r} is out of range") from exc


def is_valid_duration(text: str) -> bool:
    """Return ``True`` when *text* parses as a duration."""
    try:
        parse_duration(text)
    except DurationError:
        return False
    return True


__all__ = ["DurationError", "is_valid_duration", "parse_duration"]
