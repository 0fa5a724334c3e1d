"""
Per-employee reputation ledger.

Score starts at 75 and lives in [0, 100]:

    flagged, escalated to automatic mitigation  -> -8
    flagged, escalated to manual review         -> -4
    scanned and not flagged                     -> +0.5

Penalty and recovery are applied per scanned entry, so the score falls fast
on bad patterns and climbs slowly on sustained clean behaviour.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from timecard_guard.engine.constants import (
    DEFAULT_REPUTATION,
    MAX_REPUTATION,
    MIN_REPUTATION,
    REPUTATION_PENALTY_REBALANCE,
    REPUTATION_PENALTY_REVIEW,
    REPUTATION_RECOVERY,
)
from timecard_guard.engine.types import AnomalyAction, ReputationRecord, utcnow


PENALTIES = {
    AnomalyAction.USYC_REBALANCE: REPUTATION_PENALTY_REBALANCE,
    AnomalyAction.CEO_MANUAL_REVIEW: REPUTATION_PENALTY_REVIEW,
}


def clamp_reputation(score: float) -> float:
    return max(MIN_REPUTATION, min(MAX_REPUTATION, score))


@dataclass
class _Entry:
    score: float = DEFAULT_REPUTATION
    anomaly_count: int = 0
    confirmed_count: int = 0
    last_updated: datetime = field(default_factory=utcnow)


class ReputationLedger:
    """
    In-memory employee -> trust score map, owned by one engine instance.

    There is deliberately no set_score(): callers can only read. A ledger can
    be restored from a previous snapshot through the constructor.

    Usage:
        ledger = ReputationLedger()
        ledger.penalise("emp-1", AnomalyAction.CEO_MANUAL_REVIEW)   # 75 -> 71
        ledger.recover("emp-1")                                     # 71 -> 71.5
    """

    def __init__(self, initial_scores: Optional[Mapping[str, float]] = None):
        self._entries: Dict[str, _Entry] = {}
        for employee_id, score in (initial_scores or {}).items():
            self._entries[employee_id] = _Entry(score=clamp_reputation(float(score)))

    def _get_or_init(self, employee_id: str) -> _Entry:
        entry = self._entries.get(employee_id)
        if entry is None:
            entry = _Entry()
            self._entries[employee_id] = entry
        return entry

    def score(self, employee_id: str) -> float:
        """Current score; 75 for employees never scored."""
        entry = self._entries.get(employee_id)
        return entry.score if entry else DEFAULT_REPUTATION

    def has_history(self, employee_id: str) -> bool:
        return employee_id in self._entries

    def employee_ids(self) -> List[str]:
        return list(self._entries)

    def scores(self) -> Dict[str, float]:
        """Snapshot copy of every tracked score."""
        return {employee_id: entry.score for employee_id, entry in self._entries.items()}

    def penalise(self, employee_id: str, action: AnomalyAction) -> float:
        """Apply the detection penalty for `action`; returns the new score."""
        entry = self._get_or_init(employee_id)
        entry.score = clamp_reputation(entry.score - PENALTIES[AnomalyAction(action)])
        entry.anomaly_count += 1
        entry.last_updated = utcnow()
        return entry.score

    def recover(self, employee_id: str) -> float:
        """Clean-entry recovery; returns the new score."""
        entry = self._get_or_init(employee_id)
        entry.score = clamp_reputation(entry.score + REPUTATION_RECOVERY)
        entry.last_updated = utcnow()
        return entry.score

    def record_confirmation(self, employee_id: str) -> None:
        """Count a reviewer-confirmed anomaly. The score itself is not touched."""
        entry = self._get_or_init(employee_id)
        entry.confirmed_count += 1
        entry.last_updated = utcnow()

    def records(self, names: Optional[Mapping[str, str]] = None) -> List[ReputationRecord]:
        """Read-only view for display, one record per tracked employee."""
        names = names or {}
        return [
            ReputationRecord(
                employee_id=employee_id,
                employee_name=names.get(employee_id),
                score=entry.score,
                anomaly_count=entry.anomaly_count,
                confirmed_anomaly_count=entry.confirmed_count,
                last_updated=entry.last_updated,
            )
            for employee_id, entry in self._entries.items()
        ]

    def average(self, employee_ids: Optional[Iterable[str]] = None) -> Optional[float]:
        ids = list(self._entries) if employee_ids is None else list(employee_ids)
        if not ids:
            return None
        return sum(self.score(i) for i in ids) / len(ids)
