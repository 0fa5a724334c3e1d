"""
Feature computation for a single completed timecard entry.

extract_features() is pure: the same entry, employee, pay runs and schedules
always give the same vector. Entries that cannot be read (bad date, bad clock,
zero or >24h shift) produce None; they are never scored, never counted as
anomalies and never move reputation.
"""

import logging
from typing import Dict, Iterable, List, Optional

import pandas as pd

from timecard_guard.features.schema import AnomalyFeatures
from timecard_guard.features.time_utils import (
    clock_to_hour,
    days_between,
    hours_between,
    parse_iso_date,
    utc_day_of_week,
)
from timecard_guard.ingestion.schema import Employee, PayRun, Schedule, TimeEntry


logger = logging.getLogger(__name__)

# Pay-day distance used when no pay run bounds the entry more tightly
PAY_DAY_WINDOW_DAYS = 7

# Scheduled start assumed when a schedule resolves without a start time
DEFAULT_SCHEDULE_START_HOUR = 9.0

OCCUPATION_TYPES: Dict[str, int] = {
    "yearly": 0,
    "daily": 1,
    "hourly": 2,
}


def occupation_type_from_pay_type(pay_type: str) -> int:
    return OCCUPATION_TYPES.get((pay_type or "").lower(), 2)


def pay_day_distances(entry_date, pay_runs: Iterable[PayRun]) -> Dict[str, int]:
    """
    Closest non-negative distance to any pay-run period end, in both directions.

    Returns:
        {'days_since_pay_day': int, 'days_until_pay_day': int}, each capped at 7.
    """
    since = PAY_DAY_WINDOW_DAYS
    until = PAY_DAY_WINDOW_DAYS

    for pay_run in pay_runs:
        try:
            period_end = parse_iso_date(pay_run.period_end)
        except ValueError:
            continue

        since_days = days_between(period_end, entry_date)
        until_days = days_between(entry_date, period_end)
        if 0 <= since_days < since:
            since = since_days
        if 0 <= until_days < until:
            until = until_days

    return {"days_since_pay_day": since, "days_until_pay_day": until}


def schedule_deviation(
    clock_in_hour: float,
    employee: Employee,
    schedules: Iterable[Schedule],
) -> float:
    """Clock-in minus scheduled start; 0 when the employee has no schedule."""
    if not employee.schedule_id:
        return 0.0

    schedule = next((s for s in schedules if s.id == employee.schedule_id), None)
    if schedule is None:
        return 0.0

    scheduled_start = DEFAULT_SCHEDULE_START_HOUR
    if schedule.start_time:
        try:
            scheduled_start = clock_to_hour(schedule.start_time)
        except ValueError:
            scheduled_start = DEFAULT_SCHEDULE_START_HOUR

    return round(clock_in_hour - scheduled_start, 1)


def extract_features(
    entry: TimeEntry,
    employee: Employee,
    pay_runs: List[PayRun],
    schedules: List[Schedule],
) -> Optional[AnomalyFeatures]:
    """
    Turns one completed timecard entry into an AnomalyFeatures vector.

    Args:
        entry: Completed time entry (clock_out set)
        employee: Owner of the entry (pay type, rate, schedule reference)
        pay_runs: All known pay runs; only period_end is used
        schedules: All known schedules

    Returns:
        AnomalyFeatures, or None when the entry is malformed
    """
    if not entry.clock_out:
        return None

    try:
        clock_in_hour = clock_to_hour(entry.clock_in)
        clock_out_hour = clock_to_hour(entry.clock_out)
        duration_hours = round(hours_between(entry.clock_in, entry.clock_out), 2)
        entry_date = parse_iso_date(entry.date)
    except ValueError as e:
        logger.debug(f"Skipping entry {entry.id}: {e}")
        return None

    if duration_hours <= 0 or duration_hours > 24:
        logger.debug(f"Skipping entry {entry.id}: duration {duration_hours}h out of range")
        return None

    day_of_week = utc_day_of_week(entry_date)

    try:
        return AnomalyFeatures(
            clock_in_hour=round(clock_in_hour, 1),
            clock_out_hour=round(clock_out_hour, 1),
            duration_hours=duration_hours,
            occupation_type=occupation_type_from_pay_type(employee.pay_type),
            rate_cents=int(round(employee.rate * 100)),
            day_of_week=day_of_week,
            schedule_deviation=schedule_deviation(clock_in_hour, employee, schedules),
            is_weekend=day_of_week in (0, 6),
            **pay_day_distances(entry_date, pay_runs),
        )
    except (ValueError, OverflowError) as e:
        # pydantic's ValidationError is a ValueError (e.g. a negative rate);
        # a non-finite rate overflows the cents conversion
        logger.debug(f"Skipping entry {entry.id}: {e}")
        return None


def features_to_frame(features: List[AnomalyFeatures]) -> pd.DataFrame:
    """One row per vector, snake_case columns, original order preserved."""
    return pd.DataFrame([f.model_dump() for f in features])
