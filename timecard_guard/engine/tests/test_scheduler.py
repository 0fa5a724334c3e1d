"""
Tests for auto-scan scheduling: gating, countdown and manual dispatch.
"""

import asyncio

import pytest

from timecard_guard.engine.detector import AnomalyEngine
from timecard_guard.engine.scheduler import COUNTDOWN_JOB_ID, SCAN_JOB_ID, ScanScheduler
from timecard_guard.engine.store import InMemoryBlockedEmployeeStore
from timecard_guard.engine.types import OperatorSession, ScanStatus


def _engine(data_source, forest, role="admin", token="test-token"):
    return AnomalyEngine(
        data_source,
        forest=forest,
        store=InMemoryBlockedEmployeeStore(),
        session=OperatorSession(token=token, role=role),
    )


# ============================================================================
# COUNTDOWN
# ============================================================================

@pytest.mark.unit
def test_countdown_wraps_to_interval(data_source, fixed_score_forest):
    scheduler = ScanScheduler(_engine(data_source, fixed_score_forest()), interval_seconds=3)

    assert scheduler.next_scan_in == 3
    assert scheduler.tick() == 2
    assert scheduler.tick() == 1
    assert scheduler.tick() == 3


@pytest.mark.unit
def test_interval_must_be_positive(data_source, fixed_score_forest):
    with pytest.raises(ValueError):
        ScanScheduler(_engine(data_source, fixed_score_forest()), interval_seconds=0)


# ============================================================================
# GATING
# ============================================================================

@pytest.mark.unit
@pytest.mark.parametrize("enabled,role,token,ready,expected", [
    (True, "admin", "t", True, True),
    (False, "admin", "t", True, False),
    (True, "viewer", "t", True, False),
    (True, "admin", None, True, False),
    (True, "admin", "t", False, False),
])
def test_can_auto_scan(data_source, fixed_score_forest, enabled, role, token, ready, expected):
    engine = _engine(data_source, fixed_score_forest(ready=ready), role=role, token=token)
    scheduler = ScanScheduler(engine, enabled=enabled)
    assert scheduler.can_auto_scan() is expected


@pytest.mark.integration
def test_start_runs_first_scan_immediately(data_source, fixed_score_forest):
    engine = _engine(data_source, fixed_score_forest(score=0.9))

    async def scenario():
        scheduler = ScanScheduler(engine, interval_seconds=60)
        scheduler.start()
        active = scheduler.is_active
        await asyncio.sleep(0.3)
        scheduler.shutdown()
        await asyncio.sleep(0)
        return active, scheduler

    active, scheduler = asyncio.run(scenario())

    assert active is True
    assert engine.scan_count == 1
    assert engine.is_employee_blocked("emp-1")
    assert scheduler.is_active is False


@pytest.mark.integration
def test_toggle_auto_scan(data_source, fixed_score_forest):
    engine = _engine(data_source, fixed_score_forest(score=0.3))

    async def scenario():
        scheduler = ScanScheduler(engine, enabled=False)
        scheduler.start()
        states = [scheduler.is_active]

        scheduler.set_auto_scan_enabled(True)
        states.append(scheduler.is_active)
        states.append(scheduler._scheduler.get_job(COUNTDOWN_JOB_ID) is not None)

        scheduler.set_auto_scan_enabled(False)
        states.append(scheduler.is_active)
        states.append(scheduler._scheduler.get_job(COUNTDOWN_JOB_ID) is not None)

        scheduler.shutdown()
        await asyncio.sleep(0)
        return states

    assert asyncio.run(scenario()) == [False, True, True, False, False]


@pytest.mark.integration
def test_refresh_starts_jobs_once_model_is_ready(data_source, fixed_score_forest):
    forest = fixed_score_forest(score=0.3, ready=False)
    engine = _engine(data_source, forest)

    async def scenario():
        scheduler = ScanScheduler(engine)
        scheduler.start()
        before = scheduler.is_active

        forest.ready = True
        scheduler.refresh()
        after = scheduler._scheduler.get_job(SCAN_JOB_ID) is not None

        scheduler.shutdown()
        await asyncio.sleep(0)
        return before, after

    assert asyncio.run(scenario()) == (False, True)


@pytest.mark.unit
def test_viewer_never_gets_jobs(data_source, fixed_score_forest):
    engine = _engine(data_source, fixed_score_forest(), role="viewer")

    async def scenario():
        scheduler = ScanScheduler(engine)
        scheduler.start()
        active = scheduler.is_active
        scheduler.shutdown()
        await asyncio.sleep(0)
        return active

    assert asyncio.run(scenario()) is False


# ============================================================================
# MANUAL DISPATCH
# ============================================================================

@pytest.mark.unit
def test_trigger_scan_resets_countdown(data_source, fixed_score_forest):
    engine = _engine(data_source, fixed_score_forest(score=0.9))
    scheduler = ScanScheduler(engine, interval_seconds=60)
    scheduler.next_scan_in = 12

    result = asyncio.run(scheduler.trigger_scan())

    assert result.status == ScanStatus.COMPLETED
    assert scheduler.next_scan_in == 60
    assert engine.scan_count == 1


@pytest.mark.unit
def test_status_reports_countdown(data_source, fixed_score_forest):
    scheduler = ScanScheduler(_engine(data_source, fixed_score_forest()), interval_seconds=30, enabled=False)

    assert scheduler.status() == {
        "auto_scan_enabled": False,
        "auto_scan_active": False,
        "next_scan_in": 30,
        "interval_seconds": 30,
    }
