"""
Synthetic "normal behaviour" prior for the Isolation Forest.

There is no labelled fraud history and no trustworthy record of past
legitimate timecards, so normal is *designed* rather than observed. The
distribution below is a tunable policy:

- clock-in uniformly between 07:00 and 10:00 (0.1h resolution)
- shifts of 6 to 9.5 hours, clock-out = clock-in + duration (mod 24)
- weekdays only (Mon..Fri, Sunday=0 encoding)
- 70% hourly, 15% daily, 15% yearly staff, each with its own rate band
- pay-day distances spread over 0..13 days
- clock-in within +/-1.5h of schedule

Anything the forest isolates quickly is "unlike this prior", nothing more.
Changing these ranges changes what the engine considers suspicious.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd


logger = logging.getLogger(__name__)

DEFAULT_TRAINING_SAMPLES = 300

# Rate bands in cents, keyed by occupation_type (yearly=0, daily=1, hourly=2)
RATE_BANDS_CENTS = {
    0: (70_000, 120_000),
    1: (20_000, 40_000),
    2: (2_500, 6_000),
}


def generate_normal_training_data(
    count: int = DEFAULT_TRAINING_SAMPLES,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """
    Draws `count` plausible, legitimate timecard feature vectors.

    Args:
        count: Number of vectors (default 300)
        seed: RNG seed; None draws a fresh prior every call

    Returns:
        DataFrame with every AnomalyFeatures column (snake_case)

    Example:
        >>> prior = generate_normal_training_data(300, seed=42)
        >>> forest = TimecardIsolationForest().fit(prior)
    """
    if count < 1:
        raise ValueError(f"count must be positive, got {count}")

    rng = np.random.default_rng(seed)

    clock_in = np.round(rng.uniform(7, 10, count), 1)
    duration = np.round(rng.uniform(6, 9.5, count), 1)
    clock_out = np.round((clock_in + duration) % 24, 1)
    day_of_week = rng.integers(1, 6, count)

    # 70% hourly; the remaining 30% split evenly between daily and yearly
    occupation = np.where(
        rng.random(count) < 0.7,
        2,
        np.where(rng.random(count) < 0.5, 1, 0),
    )

    rate_cents = np.zeros(count, dtype=int)
    for occupation_type, (low, high) in RATE_BANDS_CENTS.items():
        mask = occupation == occupation_type
        rate_cents[mask] = np.round(rng.uniform(low, high, mask.sum())).astype(int)

    prior = pd.DataFrame({
        "clock_in_hour": clock_in,
        "clock_out_hour": clock_out,
        "duration_hours": duration,
        "days_since_pay_day": rng.integers(0, 14, count),
        "days_until_pay_day": rng.integers(0, 14, count),
        "occupation_type": occupation,
        "rate_cents": rate_cents,
        "day_of_week": day_of_week,
        "schedule_deviation": np.round(rng.uniform(-1.5, 1.5, count), 1),
        "is_weekend": np.zeros(count, dtype=bool),
    })

    logger.debug(f"Generated {count} synthetic normal timecard vectors (seed={seed})")
    return prior
