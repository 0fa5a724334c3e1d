"""
Deduplication keys and the durable blocked-employee mirror.

The blocked set on disk is a cache of what the anomaly records imply. It is
rewritten on every change and read once at start-up so a restart does not
silently unblock a flagged employee. Anything unreadable loads as empty.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Set, Union

from timecard_guard.engine.constants import BLOCKED_EMPLOYEES_KEY


logger = logging.getLogger(__name__)


def anomaly_key(employee_id: str, date: str, clock_in: str, clock_out: str) -> str:
    """Same employee + same physical time entry = same anomaly."""
    return f"{employee_id}|{date}|{clock_in}|{clock_out}"


class BlockedEmployeeStore:
    """
    JSON file holding {"anomaly_blocked_employees": ["emp-1", ...]}.

    Other keys already present in the file are preserved on save, so the file
    can be shared with other local settings.

    Usage:
        store = BlockedEmployeeStore("data/anomaly_blocked_employees.json")
        blocked = store.load()
        store.save(blocked | {"emp-7"})
    """

    def __init__(self, path: Union[str, Path], key: str = BLOCKED_EMPLOYEES_KEY):
        self.path = Path(path)
        self.key = key

    def _read_document(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Blocked-employee store at {self.path} unreadable, starting empty: {e}")
            return {}
        return document if isinstance(document, dict) else {}

    def load(self) -> Set[str]:
        ids = self._read_document().get(self.key)
        if not isinstance(ids, list):
            return set()
        return {str(i) for i in ids if isinstance(i, (str, int))}

    def save(self, employee_ids: Iterable[str]) -> None:
        document = self._read_document()
        document[self.key] = sorted(employee_ids)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".blocked-", suffix=".json")
        except OSError as e:
            logger.error(f"Failed to persist blocked employees to {self.path}: {e}")
            return

        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to persist blocked employees to {self.path}: {e}")
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)


class InMemoryBlockedEmployeeStore:
    """Non-durable stand-in with the same interface (tests, throwaway engines)."""

    def __init__(self, initial: Iterable[str] = ()):
        self._ids = set(initial)

    def load(self) -> Set[str]:
        return set(self._ids)

    def save(self, employee_ids: Iterable[str]) -> None:
        self._ids = set(employee_ids)
