"""
Pytest configuration and shared fixtures.

Markers, plus small builders for payroll rows and a fixed-score stand-in for
the Isolation Forest so engine scenarios do not depend on forest randomness.
"""

import pytest

from timecard_guard.ingestion.data_source import InMemoryDataSource
from timecard_guard.ingestion.schema import Employee, PayRun, Schedule, TimeEntry
from timecard_guard.models.isolation_forest import Detection


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (trains a real forest or spans layers)"
    )
    config.addinivalue_line(
        "markers",
        "unit: mark test as unit test (fast, isolated)"
    )


class FixedScoreForest:
    """
    Stand-in for TimecardIsolationForest: every sample gets the same score.

    `flag_indices` limits which samples are reported by detect(); None means all.
    """

    def __init__(self, score: float = 0.9, ready: bool = True, flag_indices=None):
        self.fixed_score = score
        self.ready = ready
        self.flag_indices = flag_indices
        self.detect_calls = 0

    @property
    def is_ready(self) -> bool:
        return self.ready

    def fit(self, samples, verbose=False):
        self.ready = True
        return self

    def detect(self, samples, threshold):
        self.detect_calls += 1
        samples = list(samples)
        if self.fixed_score <= threshold:
            return []
        return [
            Detection(index=i, score=self.fixed_score, features=f)
            for i, f in enumerate(samples)
            if self.flag_indices is None or i in self.flag_indices
        ]


@pytest.fixture
def make_employee():
    def _make(employee_id="emp-1", name="Alice", pay_type="hourly", rate=25.0, schedule_id=None):
        return Employee(id=employee_id, name=name, pay_type=pay_type, rate=rate, schedule_id=schedule_id)
    return _make


@pytest.fixture
def make_entry():
    counter = {"n": 0}

    def _make(employee_id="emp-1", date="2025-01-08", clock_in="09:00", clock_out="17:00", entry_id=None):
        counter["n"] += 1
        return TimeEntry(
            id=entry_id or f"te-{counter['n']}",
            employee_id=employee_id,
            date=date,
            clock_in=clock_in,
            clock_out=clock_out,
        )
    return _make


@pytest.fixture
def pay_runs():
    return [PayRun(period_start="2024-12-16", period_end="2024-12-31", status="paid")]


@pytest.fixture
def schedules():
    return [Schedule(id="sched-day", hours_per_day=8, working_days=[1, 2, 3, 4, 5], start_time="09:00")]


@pytest.fixture
def fixed_score_forest():
    return FixedScoreForest


@pytest.fixture
def data_source(make_employee, make_entry, pay_runs, schedules):
    """One employee with one 14h shift starting 03:00 on a Wednesday."""
    employee = make_employee()
    entry = make_entry(clock_in="03:00", clock_out="17:00")
    return InMemoryDataSource(
        employees=[employee],
        time_entries=[entry],
        pay_runs=pay_runs,
        schedules=schedules,
    )
