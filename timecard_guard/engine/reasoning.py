"""
Severity tiers and human-readable justifications for a detected outlier.

Only scores above the detection threshold (0.55) ever reach this module.
"""

from typing import List

from timecard_guard.engine.constants import (
    LOW_REPUTATION_THRESHOLD,
    SEVERITY_CRITICAL,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    STRONG_OUTLIER_SCORE,
)
from timecard_guard.engine.types import Severity
from timecard_guard.features.schema import AnomalyFeatures


REASON_LONG_SHIFT = "Excessive shift duration"
REASON_SHORT_SHIFT = "Suspiciously short shift"
REASON_ODD_CLOCK_IN = "Unusual clock-in time"
REASON_WEEKEND = "Weekend entry"
REASON_SCHEDULE_DEVIATION = "Schedule deviation > 3h"
REASON_NEAR_PAY_DAY = "Entry near pay day boundary"
REASON_LOW_REPUTATION = "Low reputation score"
REASON_STRONG_OUTLIER = "Strong statistical outlier"
REASON_FALLBACK = "Statistical outlier detected by Isolation Forest"


def severity_from_score(score: float) -> Severity:
    if score >= SEVERITY_CRITICAL:
        return Severity.CRITICAL
    if score >= SEVERITY_HIGH:
        return Severity.HIGH
    if score >= SEVERITY_MEDIUM:
        return Severity.MEDIUM
    return Severity.LOW


def build_reasons(features: AnomalyFeatures, score: float, reputation: float) -> List[str]:
    """
    Every matching rule, in fixed order. Never empty.

    Args:
        features: Vector that triggered the detection
        score: Isolation Forest score
        reputation: Employee's reputation at detection time (before penalty)
    """
    reasons = []

    if features.duration_hours > 12:
        reasons.append(REASON_LONG_SHIFT)
    if features.duration_hours < 2:
        reasons.append(REASON_SHORT_SHIFT)
    if features.clock_in_hour < 5 or features.clock_in_hour > 22:
        reasons.append(REASON_ODD_CLOCK_IN)
    if features.is_weekend:
        reasons.append(REASON_WEEKEND)
    if abs(features.schedule_deviation) > 3:
        reasons.append(REASON_SCHEDULE_DEVIATION)
    if min(features.days_since_pay_day, features.days_until_pay_day) <= 1:
        reasons.append(REASON_NEAR_PAY_DAY)
    if reputation < LOW_REPUTATION_THRESHOLD:
        reasons.append(REASON_LOW_REPUTATION)
    if score > STRONG_OUTLIER_SCORE:
        reasons.append(REASON_STRONG_OUTLIER)

    if not reasons:
        reasons.append(REASON_FALLBACK)

    return reasons
