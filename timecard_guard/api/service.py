"""
Anomaly Service for FastAPI Integration.

Wraps one AnomalyEngine and its ScanScheduler and adds:
- Wiring from settings (payroll client, blocked-employee store, forest)
- Model training at startup
- Health checks and scan status
- Withdrawal eligibility lookups
"""
import logging
import time
from typing import Dict, Optional

from timecard_guard.api.config import Settings
from timecard_guard.engine.detector import AnomalyEngine
from timecard_guard.engine.scheduler import ScanScheduler
from timecard_guard.engine.store import BlockedEmployeeStore
from timecard_guard.engine.types import OperatorSession
from timecard_guard.ingestion.payroll_client import PayrollApiDataSource
from timecard_guard.models.isolation_forest import TimecardIsolationForest


logger = logging.getLogger(__name__)


class AnomalyService:
    """
    Production anomaly service for FastAPI.

    Usage:
        service = AnomalyService.from_settings(settings)
        service.start()              # trains the model, starts auto-scan

        result = await service.scheduler.trigger_scan()
        service.eligibility("emp-1")
        await service.close()
    """

    def __init__(self, engine: AnomalyEngine, scheduler: ScanScheduler, training_samples: int = 300, seed: Optional[int] = None):
        self.engine = engine
        self.scheduler = scheduler
        self.training_samples = training_samples
        self.seed = seed
        self.start_time = time.time()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnomalyService":
        logger.info("Initializing AnomalyService...")

        data_source = PayrollApiDataSource(
            settings.PAYROLL_API_URL,
            token=settings.PAYROLL_API_TOKEN,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        engine = AnomalyEngine(
            data_source,
            forest=TimecardIsolationForest(random_state=settings.MODEL_RANDOM_STATE),
            store=BlockedEmployeeStore(settings.BLOCKED_STORE_PATH),
            session=OperatorSession(token=settings.PAYROLL_API_TOKEN, role=settings.OPERATOR_ROLE),
            threshold=settings.ANOMALY_SCORE_THRESHOLD,
        )
        scheduler = ScanScheduler(
            engine,
            interval_seconds=settings.AUTO_SCAN_INTERVAL_SECONDS,
            enabled=settings.AUTO_SCAN_ENABLED,
        )

        logger.info(f"   Payroll API: {settings.PAYROLL_API_URL}")
        logger.info(f"   Blocked store: {settings.BLOCKED_STORE_PATH}")
        logger.info(f"   Threshold: {settings.ANOMALY_SCORE_THRESHOLD}")

        return cls(
            engine,
            scheduler,
            training_samples=settings.TRAINING_SAMPLES,
            seed=settings.MODEL_RANDOM_STATE,
        )

    def start(self) -> None:
        """Train the forest, then let the scheduler decide whether to auto-scan."""
        if not self.engine.model_ready:
            self.engine.train_model(samples=self.training_samples, seed=self.seed)
        self.scheduler.start()
        logger.info(f"AnomalyService ready (auto-scan active: {self.scheduler.is_active})")

    def scan_status(self) -> Dict:
        return {**self.engine.status(), **self.scheduler.status()}

    def eligibility(self, employee_id: str) -> Dict:
        blocked = self.engine.is_employee_blocked(employee_id)
        return {
            "employee_id": employee_id,
            "eligible": not blocked,
            "blocked": blocked,
            "reputation_score": self.engine.get_reputation(employee_id),
        }

    def set_auto_scan(self, enabled: bool) -> Dict:
        self.scheduler.set_auto_scan_enabled(enabled)
        return self.scan_status()

    def health_check(self) -> Dict:
        """
        Check if service is healthy.

        Returns:
            Dict with health status and component checks
        """
        try:
            model_ready = self.engine.model_ready
            status = "healthy" if model_ready else "degraded"

            return {
                "status": status,
                "model_ready": model_ready,
                "auto_scan_active": self.scheduler.is_active,
                "scan_count": self.engine.scan_count,
                "blocked_employees": len(self.engine.blocked_employee_ids),
                "uptime_seconds": time.time() - self.start_time,
                "last_error": self.engine.error,
            }

        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return {
                "status": "down",
                "model_ready": False,
                "auto_scan_active": False,
                "scan_count": 0,
                "blocked_employees": 0,
                "uptime_seconds": time.time() - self.start_time,
                "last_error": str(e),
            }

    async def close(self) -> None:
        """Cleanup resources on shutdown."""
        logger.info("Closing AnomalyService...")
        self.scheduler.shutdown()

        aclose = getattr(self.engine.data_source, "aclose", None)
        if aclose is not None:
            await aclose()

        summary = self.engine.summary()
        logger.info(
            f"Final stats: {self.engine.scan_count} scans, "
            f"{summary.total_anomalies} anomalies, "
            f"{len(self.engine.blocked_employee_ids)} blocked employees"
        )
