"""
Tests for the reputation ledger, severity tiers and reason building.
"""

import pytest

from timecard_guard.engine.reasoning import (
    REASON_FALLBACK,
    REASON_LONG_SHIFT,
    REASON_LOW_REPUTATION,
    REASON_NEAR_PAY_DAY,
    REASON_ODD_CLOCK_IN,
    REASON_SCHEDULE_DEVIATION,
    REASON_SHORT_SHIFT,
    REASON_STRONG_OUTLIER,
    REASON_WEEKEND,
    build_reasons,
    severity_from_score,
)
from timecard_guard.engine.reputation import ReputationLedger, clamp_reputation
from timecard_guard.engine.types import AnomalyAction, Severity
from timecard_guard.features.schema import AnomalyFeatures


def _features(**overrides):
    values = dict(
        clock_in_hour=9.0,
        clock_out_hour=17.0,
        duration_hours=8.0,
        days_since_pay_day=7,
        days_until_pay_day=7,
        occupation_type=2,
        rate_cents=2500,
        day_of_week=3,
        schedule_deviation=0.0,
        is_weekend=False,
    )
    values.update(overrides)
    return AnomalyFeatures(**values)


# ============================================================================
# REPUTATION LEDGER
# ============================================================================

@pytest.mark.unit
def test_unknown_employee_starts_at_75():
    ledger = ReputationLedger()
    assert ledger.score("emp-x") == 75.0
    assert not ledger.has_history("emp-x")
    assert ledger.average() is None


@pytest.mark.unit
def test_penalties_by_action():
    ledger = ReputationLedger()
    assert ledger.penalise("emp-1", AnomalyAction.CEO_MANUAL_REVIEW) == 71.0
    assert ledger.penalise("emp-1", AnomalyAction.USYC_REBALANCE) == 63.0
    assert ledger.has_history("emp-1")


@pytest.mark.unit
def test_recovery_is_half_a_point():
    ledger = ReputationLedger({"emp-1": 50})
    for _ in range(10):
        ledger.recover("emp-1")
    assert ledger.score("emp-1") == 55.0


@pytest.mark.unit
def test_score_clamped_to_bounds():
    ledger = ReputationLedger({"low": 3, "high": 99.8})
    ledger.penalise("low", AnomalyAction.USYC_REBALANCE)
    ledger.recover("high")

    assert ledger.score("low") == 0.0
    assert ledger.score("high") == 100.0
    assert clamp_reputation(-5) == 0.0
    assert clamp_reputation(140) == 100.0


@pytest.mark.unit
def test_initial_scores_are_clamped():
    ledger = ReputationLedger({"emp-1": 250})
    assert ledger.score("emp-1") == 100.0


@pytest.mark.unit
def test_scores_returns_a_copy():
    ledger = ReputationLedger({"emp-1": 60})
    snapshot = ledger.scores()
    snapshot["emp-1"] = 0
    assert ledger.score("emp-1") == 60


@pytest.mark.unit
def test_records_carry_counts_and_names():
    ledger = ReputationLedger()
    ledger.penalise("emp-1", AnomalyAction.CEO_MANUAL_REVIEW)
    ledger.record_confirmation("emp-1")
    ledger.recover("emp-2")

    records = {r.employee_id: r for r in ledger.records({"emp-1": "Alice"})}

    assert records["emp-1"].employee_name == "Alice"
    assert records["emp-1"].anomaly_count == 1
    assert records["emp-1"].confirmed_anomaly_count == 1
    assert records["emp-1"].score == 71.0
    assert records["emp-2"].employee_name is None
    assert records["emp-2"].score == 75.5


@pytest.mark.unit
def test_confirmation_does_not_move_score():
    ledger = ReputationLedger({"emp-1": 60})
    ledger.record_confirmation("emp-1")
    assert ledger.score("emp-1") == 60


@pytest.mark.unit
def test_average_over_tracked_employees():
    ledger = ReputationLedger({"a": 70, "b": 80})
    assert ledger.average() == 75.0
    assert ledger.average(["a"]) == 70.0


# ============================================================================
# SEVERITY
# ============================================================================

@pytest.mark.unit
@pytest.mark.parametrize("score,expected", [
    (0.95, Severity.CRITICAL),
    (0.85, Severity.CRITICAL),
    (0.849, Severity.HIGH),
    (0.72, Severity.HIGH),
    (0.65, Severity.MEDIUM),
    (0.60, Severity.MEDIUM),
    (0.58, Severity.LOW),
])
def test_severity_bands(score, expected):
    assert severity_from_score(score) == expected


# ============================================================================
# REASONS
# ============================================================================

@pytest.mark.unit
def test_fallback_reason_when_nothing_matches():
    assert build_reasons(_features(), 0.6, 75) == [REASON_FALLBACK]


@pytest.mark.unit
def test_all_reasons_in_fixed_order():
    features = _features(
        clock_in_hour=3.0,
        clock_out_hour=17.0,
        duration_hours=14.0,
        days_since_pay_day=1,
        day_of_week=0,
        is_weekend=True,
        schedule_deviation=-6.0,
    )
    reasons = build_reasons(features, 0.9, 30)

    assert reasons == [
        REASON_LONG_SHIFT,
        REASON_ODD_CLOCK_IN,
        REASON_WEEKEND,
        REASON_SCHEDULE_DEVIATION,
        REASON_NEAR_PAY_DAY,
        REASON_LOW_REPUTATION,
        REASON_STRONG_OUTLIER,
    ]


@pytest.mark.unit
def test_short_shift_and_late_clock_in():
    features = _features(clock_in_hour=23.0, clock_out_hour=0.5, duration_hours=1.5)
    reasons = build_reasons(features, 0.6, 75)
    assert reasons == [REASON_SHORT_SHIFT, REASON_ODD_CLOCK_IN]


@pytest.mark.unit
def test_boundaries_are_exclusive():
    features = _features(clock_in_hour=5.0, duration_hours=12.0, schedule_deviation=3.0)
    assert build_reasons(features, 0.8, 40) == [REASON_FALLBACK]


@pytest.mark.unit
def test_near_pay_day_either_direction():
    assert REASON_NEAR_PAY_DAY in build_reasons(_features(days_until_pay_day=0), 0.6, 75)
    assert REASON_NEAR_PAY_DAY in build_reasons(_features(days_since_pay_day=1), 0.6, 75)
    assert REASON_NEAR_PAY_DAY not in build_reasons(_features(days_since_pay_day=2), 0.6, 75)
