"""
HTTP data source for the payroll backend.

Endpoints (bearer token auth, JSON lists):
- GET /recipients                      -> employees
- GET /employees/{id}/time-entries     -> one employee's time entries
- GET /pay-runs                        -> pay runs
- GET /schedules                       -> schedules (public)

Every transport, status or decoding failure surfaces as DataSourceError.
"""

import logging
from typing import Any, List, Optional

import httpx

from timecard_guard.exceptions import DataSourceError
from timecard_guard.ingestion.data_source import parse_rows
from timecard_guard.ingestion.schema import Employee, PayRun, Schedule, TimeEntry


logger = logging.getLogger(__name__)


class PayrollApiDataSource:
    """
    Read-only async client over the payroll REST API.

    Usage:
        source = PayrollApiDataSource("http://localhost:4000", token="...")
        employees = await source.get_employees()
        await source.aclose()
    """

    REQUEST_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, path: str) -> Any:
        try:
            response = await self._client.get(path, headers=self._get_headers())
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise DataSourceError(f"Request timeout - {path} did not respond in time", resource=path) from e
        except httpx.HTTPStatusError as e:
            raise DataSourceError(
                f"{path} returned HTTP {e.response.status_code}", resource=path
            ) from e
        except httpx.RequestError as e:
            raise DataSourceError(f"Network error on {path}: {e}", resource=path) from e
        except ValueError as e:
            raise DataSourceError(f"Invalid JSON response from {path}", resource=path) from e

    async def get_employees(self) -> List[Employee]:
        return parse_rows(Employee, await self._get("/recipients"), "/recipients")

    async def get_employee_time_entries(self, employee_id: str) -> List[TimeEntry]:
        path = f"/employees/{employee_id}/time-entries"
        return parse_rows(TimeEntry, await self._get(path), path, owner=employee_id)

    async def get_pay_runs(self) -> List[PayRun]:
        return parse_rows(PayRun, await self._get("/pay-runs"), "/pay-runs")

    async def get_schedules(self) -> List[Schedule]:
        return parse_rows(Schedule, await self._get("/schedules"), "/schedules")

    async def aclose(self) -> None:
        await self._client.aclose()
