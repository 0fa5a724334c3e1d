"""
Escalation & blocking state machine.

    created ──► pending_review ──────┐
       │        (reputation >= 40)   ├──► confirmed
       └──────► rebalance_triggered ─┘    review_dismissed
                (reputation < 40)

The two open states are chosen once, at creation. The terminal states are
reached only through resolve_record(); there is no way back.

Blocked set = employees holding at least one open record. It is always
derived from the records, never edited directly.
"""

import logging
import secrets
import uuid
from typing import Iterable, Optional, Set, Tuple, Union

from timecard_guard.engine.constants import DEFAULT_RESOLVER, LOW_REPUTATION_THRESHOLD
from timecard_guard.engine.reasoning import build_reasons, severity_from_score
from timecard_guard.engine.types import (
    RESOLUTIONS,
    AnomalyAction,
    AnomalyRecord,
    AnomalyStatus,
    utcnow,
)
from timecard_guard.features.schema import AnomalyFeatures


logger = logging.getLogger(__name__)


def decide_action(reputation: float) -> Tuple[AnomalyAction, AnomalyStatus]:
    """Action and initial status for a new anomaly, from detection-time reputation."""
    if reputation < LOW_REPUTATION_THRESHOLD:
        return AnomalyAction.USYC_REBALANCE, AnomalyStatus.REBALANCE_TRIGGERED
    return AnomalyAction.CEO_MANUAL_REVIEW, AnomalyStatus.PENDING_REVIEW


def new_record_id() -> str:
    return f"anom-{uuid.uuid4().hex}"


def synthetic_tx_hash() -> str:
    """Audit reference for an automatic mitigation: 0x + 64 hex chars."""
    return "0x" + secrets.token_hex(32)


def create_record(
    employee_id: str,
    employee_name: str,
    score: float,
    features: AnomalyFeatures,
    reputation: float,
    dedup_key: str,
) -> AnomalyRecord:
    """
    Builds a new open AnomalyRecord for a freshly detected outlier.

    `reputation` is the employee's score before this detection's penalty; it
    picks the escalation path and is stored as the record's snapshot.
    """
    action, status = decide_action(reputation)

    return AnomalyRecord(
        id=new_record_id(),
        employee_id=employee_id,
        employee_name=employee_name,
        anomaly_score=round(min(max(score, 0.0), 1.0), 3),
        severity=severity_from_score(score),
        status=status,
        action=action,
        reputation_score=reputation,
        reasons=build_reasons(features, score, reputation),
        features=features,
        rebalance_tx_hash=synthetic_tx_hash() if action == AnomalyAction.USYC_REBALANCE else None,
        dedup_key=dedup_key,
    )


def parse_resolution(resolution: Union[str, AnomalyStatus]) -> AnomalyStatus:
    """
    Raises:
        ValueError: resolution is not 'confirmed' or 'review_dismissed'
    """
    try:
        status = AnomalyStatus(resolution)
    except ValueError:
        status = None

    if status not in RESOLUTIONS:
        raise ValueError(
            f"resolution must be one of {sorted(s.value for s in RESOLUTIONS)}, got '{resolution}'"
        )
    return status


def resolve_record(
    record: AnomalyRecord,
    resolution: Union[str, AnomalyStatus],
    resolved_by: str = DEFAULT_RESOLVER,
) -> bool:
    """
    Moves an open record to its terminal state.

    Returns:
        True if the record changed; False if it was already resolved (no-op)
    """
    status = parse_resolution(resolution)

    if not record.is_open:
        logger.info(
            f"Anomaly {record.id} already resolved as {record.status.value}; ignoring {status.value}"
        )
        return False

    record.status = status
    record.resolved_at = utcnow()
    record.resolved_by = resolved_by
    return True


def derive_blocked(records: Iterable[AnomalyRecord]) -> Set[str]:
    """Employees with at least one pending_review / rebalance_triggered record."""
    return {record.employee_id for record in records if record.is_open}


def find_record(records: Iterable[AnomalyRecord], record_id: str) -> Optional[AnomalyRecord]:
    return next((r for r in records if r.id == record_id), None)
