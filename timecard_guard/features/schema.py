"""
Strict definition of the feature extractor's output.

One AnomalyFeatures is built per completed timecard entry, per scan:

1. Time of day:
• clock_in_hour / clock_out_hour (Float): fractional hours in [0, 24).
• duration_hours (Float): shift length, wraps past midnight, (0, 24].

2. Pay-day proximity:
• days_since_pay_day (Int): days since the closest earlier pay-run period end.
• days_until_pay_day (Int): days until the closest later pay-run period end.
  Both default to 7 when no boundary is closer.

3. Who is being paid:
• occupation_type (Int): yearly=0, daily=1, hourly=2.
• rate_cents (Int): the employee's rate in cents.

4. Calendar / schedule:
• day_of_week (Int): UTC day of week, Sunday=0.
• schedule_deviation (Float): clock-in minus scheduled start, signed hours.
• is_weekend (Bool): day_of_week in {0, 6}.

Vectors are immutable and never persisted.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AnomalyFeatures(BaseModel):
    """Feature vector for one timecard entry, frozen once computed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    # --- 1. Time of day ---
    clock_in_hour: float = Field(..., ge=0.0, le=24.0)
    clock_out_hour: float = Field(..., ge=0.0, le=24.0)
    duration_hours: float = Field(..., gt=0.0, le=24.0)

    # --- 2. Pay-day proximity ---
    days_since_pay_day: int = Field(..., ge=0)
    days_until_pay_day: int = Field(..., ge=0)

    # --- 3. Who is being paid ---
    occupation_type: int = Field(..., ge=0, le=2)
    rate_cents: int = Field(..., ge=0)

    # --- 4. Calendar / schedule ---
    day_of_week: int = Field(..., ge=0, le=6)
    schedule_deviation: float
    is_weekend: bool
