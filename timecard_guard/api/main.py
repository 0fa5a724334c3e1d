"""
FastAPI REST API for Timecard Anomaly Detection

Architecture:
- GET  /anomalies: Anomaly records, newest first (filter by employee/status)
- GET  /anomalies/summary: Dashboard aggregate
- POST /anomalies/{id}/resolve: CEO resolution (confirmed | review_dismissed)
- GET  /reputations: Per-employee trust scores
- POST /scan: Manual scan
- GET  /scan/status, PUT /scan/auto: Scan flags, countdown, auto-scan toggle
- GET  /employees/{id}/withdrawal-eligibility: Withdrawal veto
- GET  /health: System health check
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.responses import JSONResponse

from timecard_guard.api.config import settings
from timecard_guard.api.models import (
    AutoScanRequest,
    EligibilityResponse,
    ErrorResponse,
    HealthCheckResponse,
    ResolveRequest,
    ScanStatusResponse,
)
from timecard_guard.api.service import AnomalyService
from timecard_guard.engine.types import (
    AnomalyRecord,
    AnomalyStatus,
    AnomalySummary,
    ReputationRecord,
    ScanResult,
)

# Setup logging
_handlers = [logging.StreamHandler()]
if settings.LOG_FILE:
    _handlers.append(logging.FileHandler(settings.LOG_FILE))

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_handlers,
)
logger = logging.getLogger(__name__)

# Global service instance (initialized at startup)
anomaly_service: Optional[AnomalyService] = None
startup_time: float = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    - Wire the payroll client, blocked-employee store and engine
    - Train the Isolation Forest on the synthetic prior
    - Start auto-scan if the operator is an admin with a token

    Shutdown:
    - Stop both scheduler jobs
    - Close the payroll HTTP client
    """
    global anomaly_service, startup_time

    logger.info("=" * 70)
    logger.info("STARTING TIMECARD ANOMALY DETECTION API")
    logger.info("=" * 70)

    startup_time = time.time()

    try:
        anomaly_service = AnomalyService.from_settings(settings)
        anomaly_service.start()

        health = anomaly_service.health_check()
        if health["status"] != "healthy":
            raise RuntimeError(f"Service unhealthy: {health}")

        logger.info("Health check passed")
        logger.info(f"API ready at http://{settings.API_HOST}:{settings.API_PORT}")
        logger.info("=" * 70)

        yield

    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    finally:
        logger.info("Shutting down API...")
        if anomaly_service:
            await anomaly_service.close()
        logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=(
        "Timecard anomaly detection and employee reputation\n\n"
        "- Isolation Forest scoring of completed time entries\n"
        "- Reputation-driven escalation (CEO review or automatic rebalance)\n"
        "- Withdrawal veto while an anomaly is open\n"
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all uncaught exceptions gracefully."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred. Please try again.",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


def get_service() -> AnomalyService:
    if anomaly_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "ServiceUnavailable", "message": "Anomaly service is not initialized"},
        )
    return anomaly_service


# ============================================================================
# ANOMALIES
# ============================================================================

@app.get(
    "/anomalies",
    response_model=List[AnomalyRecord],
    summary="List Anomalies",
)
async def list_anomalies(
    employee_id: Optional[str] = None,
    status_filter: Optional[AnomalyStatus] = Query(None, alias="status"),
    service: AnomalyService = Depends(get_service),
) -> List[AnomalyRecord]:
    """Anomaly records newest first, optionally filtered by employee and status."""
    return service.engine.anomalies(employee_id=employee_id, status=status_filter)


@app.get(
    "/anomalies/summary",
    response_model=AnomalySummary,
    summary="Anomaly Summary",
)
async def anomaly_summary(service: AnomalyService = Depends(get_service)) -> AnomalySummary:
    return service.engine.summary()


@app.post(
    "/anomalies/{record_id}/resolve",
    response_model=AnomalyRecord,
    summary="Resolve Anomaly",
    description=(
        "Close an open anomaly as `confirmed` or `review_dismissed`.\n\n"
        "Resolving a record that is already closed is a no-op and returns it unchanged. "
        "The employee stays blocked while any other anomaly of theirs is open."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Unknown anomaly id"},
        422: {"description": "Invalid resolution"},
    },
)
async def resolve_anomaly(
    record_id: str,
    request: ResolveRequest,
    service: AnomalyService = Depends(get_service),
) -> AnomalyRecord:
    existing = next((r for r in service.engine.anomalies() if r.id == record_id), None)
    if existing is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "NotFound",
                "message": f"Anomaly {record_id} not found",
                "record_id": record_id,
            },
        )

    try:
        resolved = service.engine.resolve(record_id, request.resolution, request.resolved_by)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "ValidationError", "message": str(e), "record_id": record_id},
        )

    return resolved if resolved is not None else existing


# ============================================================================
# REPUTATION & ELIGIBILITY
# ============================================================================

@app.get(
    "/reputations",
    response_model=List[ReputationRecord],
    summary="Employee Reputations",
)
async def list_reputations(service: AnomalyService = Depends(get_service)) -> List[ReputationRecord]:
    return service.engine.reputations()


@app.get(
    "/employees/{employee_id}/withdrawal-eligibility",
    response_model=EligibilityResponse,
    summary="Withdrawal Eligibility",
    description="An employee may withdraw only while none of their anomalies is open.",
)
async def withdrawal_eligibility(
    employee_id: str,
    service: AnomalyService = Depends(get_service),
) -> EligibilityResponse:
    return EligibilityResponse(**service.eligibility(employee_id))


# ============================================================================
# SCANNING
# ============================================================================

@app.post(
    "/scan",
    response_model=ScanResult,
    summary="Run Scan Now",
    description=(
        "Run one scan immediately and reset the auto-scan countdown.\n\n"
        "Returns status `skipped` if a scan is already running, the model is not "
        "ready, or no session token is configured."
    ),
)
async def run_scan(service: AnomalyService = Depends(get_service)) -> ScanResult:
    result = await service.scheduler.trigger_scan()
    logger.info(
        f"Manual scan: status={result.status.value}, "
        f"scanned={result.scanned_entries}, new={result.new_anomalies}"
    )
    return result


@app.get(
    "/scan/status",
    response_model=ScanStatusResponse,
    summary="Scan Status",
)
async def scan_status(service: AnomalyService = Depends(get_service)) -> ScanStatusResponse:
    return ScanStatusResponse(**service.scan_status())


@app.put(
    "/scan/auto",
    response_model=ScanStatusResponse,
    summary="Toggle Auto-Scan",
)
async def set_auto_scan(
    request: AutoScanRequest,
    service: AnomalyService = Depends(get_service),
) -> ScanStatusResponse:
    return ScanStatusResponse(**service.set_auto_scan(request.enabled))


# ============================================================================
# HEALTH
# ============================================================================

@app.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health Check",
)
async def health_check(service: AnomalyService = Depends(get_service)) -> HealthCheckResponse:
    return HealthCheckResponse(**service.health_check())


@app.get(
    "/",
    summary="Root Endpoint",
    description="Welcome message with API information",
)
async def root() -> Dict:
    """Root endpoint with API info."""
    return {
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "status": "running",
        "uptime_seconds": time.time() - startup_time,
        "endpoints": {
            "anomalies": "GET /anomalies - Anomaly records",
            "summary": "GET /anomalies/summary - Dashboard summary",
            "resolve": "POST /anomalies/{id}/resolve - Resolve an anomaly",
            "reputations": "GET /reputations - Employee reputation scores",
            "scan": "POST /scan - Run a scan now",
            "scan_status": "GET /scan/status - Scan flags and countdown",
            "auto_scan": "PUT /scan/auto - Enable or disable auto-scan",
            "eligibility": "GET /employees/{id}/withdrawal-eligibility - Withdrawal veto",
            "health": "GET /health - Health check",
            "docs": "GET /docs - Interactive API documentation",
        },
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    print("\n" + "=" * 70)
    print("STARTING TIMECARD ANOMALY DETECTION API")
    print("=" * 70)
    print(f"Host: {settings.API_HOST}")
    print(f"Port: {settings.API_PORT}")
    print(f"Payroll API: {settings.PAYROLL_API_URL}")
    print(f"Auto-scan: {settings.AUTO_SCAN_ENABLED} (every {settings.AUTO_SCAN_INTERVAL_SECONDS}s)")
    print("=" * 70 + "\n")

    uvicorn.run(
        "timecard_guard.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
