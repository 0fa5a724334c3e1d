"""
Pydantic models for API request/response validation.
Engine records (AnomalyRecord, AnomalySummary, ...) are returned as-is; the
models here cover the API-only payloads.
"""
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from timecard_guard.engine.constants import DEFAULT_RESOLVER


class ResolveRequest(BaseModel):
    """
    Input: CEO decision on an open anomaly.

    Only terminal statuses are accepted; anything else is rejected with 422
    before the engine is touched.
    """
    resolution: Literal["confirmed", "review_dismissed"] = Field(
        ..., description="confirmed | review_dismissed"
    )
    resolved_by: str = Field(default=DEFAULT_RESOLVER, description="Who resolved the anomaly")

    @field_validator('resolved_by')
    @classmethod
    def resolved_by_not_blank(cls, v):
        if not v.strip():
            raise ValueError("resolved_by must not be blank")
        return v.strip()

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"resolution": "review_dismissed", "resolved_by": "ceo"}
        }
    )


class AutoScanRequest(BaseModel):
    enabled: bool


class ScanStatusResponse(BaseModel):
    """Engine flags plus the scheduler countdown."""
    scanning: bool
    model_ready: bool
    error: Optional[str] = None
    scan_count: int
    last_scan_at: Optional[datetime] = None
    blocked_employees: int
    auto_scan_enabled: bool
    auto_scan_active: bool
    next_scan_in: int = Field(..., description="Seconds until the next automatic scan")
    interval_seconds: int


class EligibilityResponse(BaseModel):
    """Withdrawal veto for one employee."""
    employee_id: str
    eligible: bool = Field(..., description="False while any anomaly for the employee is open")
    blocked: bool
    reputation_score: float


class HealthCheckResponse(BaseModel):
    """System health status."""
    status: str = Field(..., description="healthy | degraded | down")
    model_ready: bool
    auto_scan_active: bool
    scan_count: int
    blocked_employees: int
    uptime_seconds: float
    last_error: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    message: str
    record_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
