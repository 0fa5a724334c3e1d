import pandas as pd
from datetime import date


def clock_to_hour(clock: str) -> float:
    """
    Parses a wall-clock string into fractional hours.

    Accepts "HH:MM", "HH:MM:SS" and full ISO timestamps ("2025-01-06T08:30:00Z"),
    in which case only the time-of-day part is used.
    "08:30" -> 8.5

    Raises ValueError when the clock cannot be read.
    """
    if clock is None:
        raise ValueError("clock is missing")

    clock = clock.strip()
    if "T" in clock:
        ts = pd.Timestamp(clock)
        return ts.hour + ts.minute / 60 + ts.second / 3600

    parts = clock.split(":")
    if not 1 <= len(parts) <= 3:
        raise ValueError(f"Unreadable clock value: '{clock}'")

    hours = int(parts[0])
    minutes = int(parts[1]) if len(parts) > 1 and parts[1] else 0
    seconds = int(parts[2]) if len(parts) > 2 and parts[2] else 0

    if not (0 <= hours <= 24 and 0 <= minutes < 60 and 0 <= seconds < 60):
        raise ValueError(f"Clock value out of range: '{clock}'")

    return hours + minutes / 60 + seconds / 3600


def hours_between(clock_in: str, clock_out: str) -> float:
    """
    Shift length between two clocks. A clock-out earlier than the clock-in
    means the shift ran past midnight, so 24h is added.
    """
    diff = clock_to_hour(clock_out) - clock_to_hour(clock_in)
    return diff if diff >= 0 else diff + 24


def parse_iso_date(value: str) -> date:
    """Strict YYYY-MM-DD parse; raises ValueError otherwise."""
    if not value:
        raise ValueError("date is missing")
    return date.fromisoformat(value.strip())


def days_between(start: date, end: date) -> int:
    """Signed whole days from start to end."""
    return (end - start).days


def utc_day_of_week(d: date) -> int:
    """Day of week with Sunday=0 ... Saturday=6."""
    return (d.weekday() + 1) % 7
