from __future__ import annotations
import re

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND

_LAP_RE = re.compile(
    r"^\+?(?:(?P<minutes>\d+):(?P<mm_seconds>\d{2})|(?P<seconds>\d{1,2}))\.(?P<millis>\d{3})$"
)


class InvalidLapTime(ValueError):
    code = "invalid_lap_time"


def format_lap_time(ms: int) -> str:
    """Render milliseconds as "m:ss.mmm" (minutes unpadded, always present).

    >>> format_lap_time(95320)
    '1:35.320'
    >>> format_lap_time(59999)
    '0:59.999'
    """
    if ms < 0:
        raise InvalidLapTime(f"negative lap time: {ms}")
    minutes, rem = divmod(ms, MS_PER_MINUTE)
    seconds, millis = divmod(rem, MS_PER_SECOND)
    return f"{minutes}:{seconds:02d}.{millis:03d}"


def format_gap(ms: int) -> str:
    """Gap to the leader: "+s.mmm" under a minute, "+m:ss.mmm" otherwise.

    >>> format_gap(1680)
    '+1.680'
    >>> format_gap(61000)
    '+1:01.000'
    """
    if ms < 0:
        raise InvalidLapTime(f"negative gap: {ms}")
    if ms < MS_PER_MINUTE:
        seconds, millis = divmod(ms, MS_PER_SECOND)
        return f"+{seconds}.{millis:03d}"
    return "+" + format_lap_time(ms)


def parse_lap_time(text: str) -> int:
    """Inverse of format_lap_time / format_gap. Accepts "m:ss.mmm", "s.mmm", optional leading "+"."""
    m = _LAP_RE.match((text or "").strip())
    if not m:
        raise InvalidLapTime(f"malformed lap time: {text!r}")
    if m.group("minutes") is not None:
        minutes = int(m.group("minutes"))
        seconds = int(m.group("mm_seconds"))
    else:
        minutes = 0
        seconds = int(m.group("seconds"))
    if seconds >= 60:
        raise InvalidLapTime(f"seconds out of range: {text!r}")
    return minutes * MS_PER_MINUTE + seconds * MS_PER_SECOND + int(m.group("millis"))


def lap_time_from_components(minutes: int | None, seconds: int | None, milliseconds: int | None) -> int:
    """Combine form fields into milliseconds; missing parts count as zero."""
    minutes, seconds, milliseconds = minutes or 0, seconds or 0, milliseconds or 0
    if minutes < 0 or seconds < 0 or milliseconds < 0:
        raise InvalidLapTime("lap time components must not be negative")
    if seconds >= 60 or milliseconds >= 1000:
        raise InvalidLapTime("seconds must be < 60 and milliseconds < 1000")
    total = minutes * MS_PER_MINUTE + seconds * MS_PER_SECOND + milliseconds
    if total <= 0:
        raise InvalidLapTime("lap time must be positive")
    return total
