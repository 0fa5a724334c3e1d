"""
Tests for escalation, resolution and the blocked-employee mirror.
"""

import json
import os
import re

import pytest

from timecard_guard.engine.escalation import (
    create_record,
    decide_action,
    derive_blocked,
    find_record,
    parse_resolution,
    resolve_record,
    synthetic_tx_hash,
)
from timecard_guard.engine.store import (
    BlockedEmployeeStore,
    InMemoryBlockedEmployeeStore,
    anomaly_key,
)
from timecard_guard.engine.types import AnomalyAction, AnomalyStatus, Severity
from timecard_guard.features.schema import AnomalyFeatures


@pytest.fixture
def features():
    return AnomalyFeatures(
        clock_in_hour=3.0,
        clock_out_hour=17.0,
        duration_hours=14.0,
        days_since_pay_day=7,
        days_until_pay_day=7,
        occupation_type=2,
        rate_cents=2500,
        day_of_week=3,
        schedule_deviation=-6.0,
        is_weekend=False,
    )


def _record(features, employee_id="emp-1", reputation=75.0, score=0.9):
    return create_record(
        employee_id=employee_id,
        employee_name="Alice",
        score=score,
        features=features,
        reputation=reputation,
        dedup_key=anomaly_key(employee_id, "2025-01-08", "03:00", "17:00"),
    )


# ============================================================================
# ESCALATION
# ============================================================================

@pytest.mark.unit
def test_decide_action_by_reputation():
    assert decide_action(75) == (AnomalyAction.CEO_MANUAL_REVIEW, AnomalyStatus.PENDING_REVIEW)
    assert decide_action(40) == (AnomalyAction.CEO_MANUAL_REVIEW, AnomalyStatus.PENDING_REVIEW)
    assert decide_action(39.5) == (AnomalyAction.USYC_REBALANCE, AnomalyStatus.REBALANCE_TRIGGERED)


@pytest.mark.unit
def test_review_record(features):
    record = _record(features, reputation=75.0, score=0.91234)

    assert record.id.startswith("anom-")
    assert record.status == AnomalyStatus.PENDING_REVIEW
    assert record.action == AnomalyAction.CEO_MANUAL_REVIEW
    assert record.severity == Severity.CRITICAL
    assert record.anomaly_score == 0.912
    assert record.reputation_score == 75.0
    assert record.rebalance_tx_hash is None
    assert record.resolved_at is None
    assert record.dedup_key == "emp-1|2025-01-08|03:00|17:00"
    assert record.reasons


@pytest.mark.unit
def test_rebalance_record_carries_tx_hash(features):
    record = _record(features, reputation=30.0)

    assert record.status == AnomalyStatus.REBALANCE_TRIGGERED
    assert record.action == AnomalyAction.USYC_REBALANCE
    assert re.fullmatch(r"0x[0-9a-f]{64}", record.rebalance_tx_hash)


@pytest.mark.unit
def test_ids_and_hashes_unique(features):
    assert _record(features).id != _record(features).id
    assert synthetic_tx_hash() != synthetic_tx_hash()


@pytest.mark.unit
def test_record_serialises_camel_case(features):
    dumped = _record(features).model_dump(by_alias=True, mode="json")
    assert dumped["employeeId"] == "emp-1"
    assert dumped["anomalyScore"] == 0.9
    assert dumped["features"]["durationHours"] == 14.0


# ============================================================================
# RESOLUTION
# ============================================================================

@pytest.mark.unit
@pytest.mark.parametrize("value", ["confirmed", "review_dismissed", AnomalyStatus.CONFIRMED])
def test_parse_resolution_accepts_terminal_states(value):
    assert parse_resolution(value) in (AnomalyStatus.CONFIRMED, AnomalyStatus.REVIEW_DISMISSED)


@pytest.mark.unit
@pytest.mark.parametrize("value", ["pending_review", "rebalance_triggered", "approved", ""])
def test_parse_resolution_rejects_everything_else(value):
    with pytest.raises(ValueError):
        parse_resolution(value)


@pytest.mark.unit
def test_resolve_once_then_noop(features):
    record = _record(features)

    assert resolve_record(record, "review_dismissed", "ceo") is True
    assert record.status == AnomalyStatus.REVIEW_DISMISSED
    assert record.resolved_by == "ceo"
    resolved_at = record.resolved_at
    assert resolved_at is not None

    assert resolve_record(record, "confirmed", "someone-else") is False
    assert record.status == AnomalyStatus.REVIEW_DISMISSED
    assert record.resolved_by == "ceo"
    assert record.resolved_at == resolved_at


@pytest.mark.unit
def test_blocked_iff_open_record(features):
    a1 = _record(features, employee_id="a")
    a2 = _record(features, employee_id="a")
    b = _record(features, employee_id="b", reputation=20)
    records = [a1, a2, b]

    assert derive_blocked(records) == {"a", "b"}

    resolve_record(a1, "confirmed")
    assert derive_blocked(records) == {"a", "b"}

    resolve_record(a2, "review_dismissed")
    resolve_record(b, "confirmed")
    assert derive_blocked(records) == set()


@pytest.mark.unit
def test_find_record(features):
    record = _record(features)
    assert find_record([record], record.id) is record
    assert find_record([record], "anom-missing") is None


# ============================================================================
# BLOCKED EMPLOYEE STORE
# ============================================================================

@pytest.mark.unit
def test_store_round_trip(tmp_path):
    store = BlockedEmployeeStore(tmp_path / "state" / "blocked.json")
    assert store.load() == set()

    store.save({"emp-2", "emp-1"})

    assert store.load() == {"emp-1", "emp-2"}
    document = json.loads((tmp_path / "state" / "blocked.json").read_text())
    assert document == {"anomaly_blocked_employees": ["emp-1", "emp-2"]}


@pytest.mark.unit
def test_store_preserves_other_keys(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"theme": "dark"}))

    BlockedEmployeeStore(path).save({"emp-1"})

    document = json.loads(path.read_text())
    assert document["theme"] == "dark"
    assert document["anomaly_blocked_employees"] == ["emp-1"]


@pytest.mark.unit
@pytest.mark.parametrize("content", [
    "{not json",
    json.dumps(["emp-1"]),
    json.dumps({"anomaly_blocked_employees": "emp-1"}),
])
def test_store_corrupt_content_loads_empty(tmp_path, content):
    path = tmp_path / "blocked.json"
    path.write_text(content)
    assert BlockedEmployeeStore(path).load() == set()


@pytest.mark.unit
def test_store_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    path = tmp_path / "blocked.json"
    store = BlockedEmployeeStore(path)
    store.save({"emp-1"})

    def refuse(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", refuse)
    store.save({"emp-2"})

    assert sorted(p.name for p in tmp_path.iterdir()) == ["blocked.json"]
    assert store.load() == {"emp-1"}


@pytest.mark.unit
def test_in_memory_store():
    store = InMemoryBlockedEmployeeStore(["emp-1"])
    assert store.load() == {"emp-1"}
    store.save(set())
    assert store.load() == set()
