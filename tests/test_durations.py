"""Duration parsing tests."""
from __future__ import annotations

from datetime import timedelta

import pytest

from imagectl.durations import DurationError, is_valid_duration, parse_duration


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("5m", timedelta(minutes=5)),
        ("5s", timedelta(seconds=5)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(minutes=90)),
        ("300ms", timedelta(milliseconds=300)),
        ("10us", timedelta(microseconds=10)),
        ("0", timedelta(0)),
        ("-2m", timedelta(minutes=-2)),
        (" 45s ", timedelta(seconds=45)),
    ],
)
def test_parse_duration(text: str, expected: timedelta) -> None:
    """Compact duration strings parse to timedeltas."""
    assert parse_duration(text) == expected


@pytest.mark.parametrize(
    ("text", "fragment"),
    [
        ("SO BAD", "invalid duration"),
        ("", "invalid duration"),
        ("-", "invalid duration"),
        ("10", "missing unit"),
        ("5m3", "missing unit"),
        ("5d", "unknown unit 'd'"),
        ("100000000000000h", "out of range"),
        ("-100000000000000h", "out of range"),
    ],
)
def test_parse_duration_errors(text: str, fragment: str) -> None:
    """Malformed durations raise with a reason."""
    with pytest.raises(DurationError, match=fragment):
        parse_duration(text)


def test_is_valid_duration() -> None:
    """The predicate mirrors the parser."""
    assert is_valid_duration("5m")
    assert not is_valid_duration("forever")
