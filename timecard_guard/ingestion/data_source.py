"""
Collaborator contract for the scan.

The engine never writes through a data source. Any implementation raises
DataSourceError when it cannot deliver; the engine decides whether that
aborts the scan (employees, pay runs, schedules) or just skips one employee
(time entries).
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

from timecard_guard.exceptions import DataSourceError
from timecard_guard.ingestion.schema import Employee, PayRun, Schedule, TimeEntry


logger = logging.getLogger(__name__)


class TimecardDataSource(Protocol):

    async def get_employees(self) -> List[Employee]:
        ...

    async def get_employee_time_entries(self, employee_id: str) -> List[TimeEntry]:
        ...

    async def get_pay_runs(self) -> List[PayRun]:
        ...

    async def get_schedules(self) -> List[Schedule]:
        ...


class InMemoryDataSource:
    """
    Snapshot-backed data source.

    Useful for offline scans of an exported payroll snapshot and for tests.
    Employees listed in `failing_employee_ids` raise DataSourceError when
    their entries are fetched.
    """

    def __init__(
        self,
        employees: Iterable[Employee] = (),
        time_entries: Iterable[TimeEntry] = (),
        pay_runs: Iterable[PayRun] = (),
        schedules: Iterable[Schedule] = (),
        failing_employee_ids: Iterable[str] = (),
    ):
        self.employees = list(employees)
        self.pay_runs = list(pay_runs)
        self.schedules = list(schedules)
        self.failing_employee_ids = set(failing_employee_ids)
        self.entries_by_employee: Dict[str, List[TimeEntry]] = {}
        for entry in time_entries:
            self.add_time_entry(entry)

    def add_time_entry(self, entry: TimeEntry) -> None:
        self.entries_by_employee.setdefault(entry.employee_id, []).append(entry)

    async def get_employees(self) -> List[Employee]:
        return list(self.employees)

    async def get_employee_time_entries(self, employee_id: str) -> List[TimeEntry]:
        if employee_id in self.failing_employee_ids:
            raise DataSourceError(f"time entries unavailable for {employee_id}", resource="time-entries")
        return list(self.entries_by_employee.get(employee_id, []))

    async def get_pay_runs(self) -> List[PayRun]:
        return list(self.pay_runs)

    async def get_schedules(self) -> List[Schedule]:
        return list(self.schedules)

    @classmethod
    def from_snapshot(cls, path: Union[str, Path]) -> "InMemoryDataSource":
        """
        Loads a JSON snapshot shaped like the payroll API responses:

            {"employees": [...], "timeEntries": [...], "payRuns": [...], "schedules": [...]}

        Rows that fail validation are logged and dropped.
        """
        with open(path, 'r', encoding='utf-8') as f:
            snapshot = json.load(f)

        return cls(
            employees=_validate_rows(Employee, snapshot.get("employees", [])),
            time_entries=_validate_rows(TimeEntry, snapshot.get("timeEntries", [])),
            pay_runs=_validate_rows(PayRun, snapshot.get("payRuns", [])),
            schedules=_validate_rows(Schedule, snapshot.get("schedules", [])),
        )


def _validate_rows(model, rows: Iterable[dict]) -> list:
    valid = []
    for row in rows:
        try:
            valid.append(model.model_validate(row))
        except ValueError as e:
            logger.warning(f"Dropping invalid {model.__name__} row: {e}")
    logger.info(f"Loaded {len(valid)} {model.__name__} rows")
    return valid


def parse_rows(model, payload, resource: str, owner: Optional[str] = None) -> list:
    """
    Validates a JSON list payload into models; used by HTTP data sources.

    Raises:
        DataSourceError: payload is not a list
    """
    if not isinstance(payload, list):
        raise DataSourceError(f"Expected a list from {resource}, got {type(payload).__name__}", resource=resource)

    rows = []
    for item in payload:
        if owner is not None and isinstance(item, dict):
            item.setdefault("employeeId", item.get("recipientId") or owner)
        try:
            rows.append(model.model_validate(item))
        except ValueError as e:
            logger.warning(f"Dropping invalid {model.__name__} from {resource}: {e}")
    return rows
