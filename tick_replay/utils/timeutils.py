"""
Time-of-day encoding and trading session utilities.

Exchange feeds encode the time of day as a decimal integer of the form
``HHMMSSmmm`` (``93000000`` is 09:30:00.000).  The engine works on a
linear millisecond offset from midnight instead, so that elapsed times
can be computed by plain subtraction.  This module centralises the
conversion in both directions together with the trading session
windows used to decide whether an order may be placed.
"""

from __future__ import annotations

from datetime import time
from typing import Iterable, Sequence, Tuple

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE

# Morning and afternoon continuous auction, both ends inclusive.
AM_SESSION: Tuple[int, int] = (34_200_000, 41_400_000)
PM_SESSION: Tuple[int, int] = (46_800_000, 54_000_000)
TRADING_SESSIONS: Tuple[Tuple[int, int], ...] = (AM_SESSION, PM_SESSION)


def time_parser(t: int) -> int:
    """Convert an encoded ``HHMMSSmmm`` time into milliseconds since midnight.

    Parameters
    ----------
    t : int
        Encoded time of day, e.g. ``145959500`` for 14:59:59.500.

    Returns
    -------
    int
        Milliseconds since midnight.
    """
    t = int(t)
    if t < 0:
        raise ValueError(f"encoded time must not be negative: {t}")
    m_secs = t % 1000
    t //= 1000
    secs = t % 100
    t //= 100
    mins = t % 100
    hours = t // 100
    return (hours * 3600 + mins * 60 + secs) * 1000 + m_secs


def time_unparser(t: int) -> int:
    """Convert milliseconds since midnight back into ``HHMMSSmmm`` form."""
    t = int(t)
    if t < 0:
        raise ValueError(f"timestamp must not be negative: {t}")
    m_secs = t % 1000
    t //= 1000
    hours = t // 3600
    t %= 3600
    mins = t // 60
    secs = t % 60
    return (hours * 10000 + mins * 100 + secs) * 1000 + m_secs


def format_timestamp(t: int) -> str:
    """Render milliseconds since midnight as ``HH:MM:SS.mmm`` for logs."""
    encoded = time_unparser(t)
    return "{:02d}:{:02d}:{:02d}.{:03d}".format(
        encoded // 10_000_000,
        encoded // 100_000 % 100,
        encoded // 1000 % 100,
        encoded % 1000,
    )


def parse_time_str(ts: str) -> time:
    """Parse a ``HH:MM`` or ``HH:MM:SS`` string into a `datetime.time` object.

    Parameters
    ----------
    ts : str
        A string in 24‑hour format such as ``"09:30"``.

    Returns
    -------
    datetime.time
        The corresponding time.
    """
    parts = [int(p) for p in ts.strip().split(":")]
    if len(parts) not in (2, 3):
        raise ValueError(f"expected HH:MM or HH:MM:SS, got {ts!r}")
    hour, minute = parts[0], parts[1]
    second = parts[2] if len(parts) == 3 else 0
    return time(hour=hour, minute=minute, second=second)


def time_to_ms(value: time) -> int:
    """Milliseconds since midnight for a `datetime.time`."""
    return (
        value.hour * MS_PER_HOUR
        + value.minute * MS_PER_MINUTE
        + value.second * MS_PER_SECOND
        + value.microsecond // 1000
    )


def session_window(start: str, end: str) -> Tuple[int, int]:
    """Build an inclusive ``(start_ms, end_ms)`` window from ``HH:MM`` strings."""
    start_ms = time_to_ms(parse_time_str(start))
    end_ms = time_to_ms(parse_time_str(end))
    if end_ms < start_ms:
        raise ValueError(f"session end {end} is before session start {start}")
    return start_ms, end_ms


def in_trading_time(timestamp: int, sessions: Iterable[Sequence[int]] = TRADING_SESSIONS) -> bool:
    """Return `True` if `timestamp` falls inside any of the session windows.

    Both window ends are inclusive, so an order stamped exactly at the
    close of the morning session is still accepted.
    """
    return any(start <= timestamp <= end for start, end in sessions)
