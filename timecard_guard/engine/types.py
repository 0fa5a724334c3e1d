"""
Engine-owned records and read-only views.

All models serialise with camelCase aliases so the HTTP layer can hand them
out unchanged.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from timecard_guard.features.schema import AnomalyFeatures


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AnomalyStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    REBALANCE_TRIGGERED = "rebalance_triggered"
    CONFIRMED = "confirmed"
    REVIEW_DISMISSED = "review_dismissed"


class AnomalyAction(str, Enum):
    CEO_MANUAL_REVIEW = "ceo_manual_review"
    USYC_REBALANCE = "usyc_rebalance"


class ScanStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    NO_DATA = "no_data"
    FAILED = "failed"


OPEN_STATUSES = frozenset({AnomalyStatus.PENDING_REVIEW, AnomalyStatus.REBALANCE_TRIGGERED})
RESOLUTIONS = frozenset({AnomalyStatus.CONFIRMED, AnomalyStatus.REVIEW_DISMISSED})


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class AnomalyRecord(_CamelModel):
    """One detected outlier. Only the resolution fields change after creation."""

    id: str
    employee_id: str
    employee_name: str
    anomaly_score: float = Field(..., ge=0.0, le=1.0)
    severity: Severity
    status: AnomalyStatus
    action: AnomalyAction
    reputation_score: float = Field(..., ge=0.0, le=100.0)
    reasons: List[str] = Field(..., min_length=1)
    features: AnomalyFeatures
    detected_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    rebalance_tx_hash: Optional[str] = None
    dedup_key: str

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES


class ReputationRecord(_CamelModel):
    employee_id: str
    employee_name: Optional[str] = None
    score: float
    anomaly_count: int = 0
    confirmed_anomaly_count: int = 0
    last_updated: datetime


class AnomalySummary(_CamelModel):
    total_anomalies: int
    pending_review: int
    rebalances_triggered: int
    avg_reputation_score: float
    by_severity: Dict[str, int]
    recent_anomalies: List[AnomalyRecord]


class ScanResult(_CamelModel):
    status: ScanStatus
    scanned_entries: int = 0
    new_anomalies: int = 0
    rebalance_triggered: int = 0
    review_triggered: int = 0
    message: Optional[str] = None
    anomalies: List[AnomalyRecord] = Field(default_factory=list)


class OperatorSession(_CamelModel):
    """Who the engine is scanning on behalf of; supplied by the host application."""

    token: Optional[str] = None
    role: str = "viewer"

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
