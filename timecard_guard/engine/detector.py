"""
Anomaly Detection Engine

Orchestrates one scan end to end:
  1. Pull employees, pay runs and schedules; fetch every employee's time
     entries concurrently (a failed employee is skipped, not fatal)
  2. Extract features from completed entries (malformed ones are dropped)
  3. Score with the Isolation Forest trained on the synthetic prior
  4. For each new outlier: escalate by detection-time reputation, penalise
  5. Recover reputation for every scanned entry that was not flagged
  6. Re-derive and persist the blocked-employee set

One engine instance owns the reputation ledger, the anomaly records, the
seen dedup keys and the scan-in-progress flag. Hold one per tenant/session.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple, Union

from timecard_guard.engine.constants import (
    ANOMALY_SCORE_THRESHOLD,
    DEFAULT_REPUTATION,
    DEFAULT_RESOLVER,
    RECENT_ANOMALIES_LIMIT,
)
from timecard_guard.engine.escalation import (
    create_record,
    derive_blocked,
    find_record,
    parse_resolution,
    resolve_record,
)
from timecard_guard.engine.reputation import ReputationLedger
from timecard_guard.engine.store import (
    BlockedEmployeeStore,
    InMemoryBlockedEmployeeStore,
    anomaly_key,
)
from timecard_guard.engine.types import (
    AnomalyAction,
    AnomalyRecord,
    AnomalyStatus,
    AnomalySummary,
    OperatorSession,
    ReputationRecord,
    ScanResult,
    ScanStatus,
    Severity,
    utcnow,
)
from timecard_guard.exceptions import DataSourceError
from timecard_guard.features.extractor import extract_features
from timecard_guard.features.schema import AnomalyFeatures
from timecard_guard.ingestion.data_source import TimecardDataSource
from timecard_guard.ingestion.schema import Employee, TimeEntry
from timecard_guard.models.isolation_forest import TimecardIsolationForest
from timecard_guard.models.training_data import (
    DEFAULT_TRAINING_SAMPLES,
    generate_normal_training_data,
)


logger = logging.getLogger(__name__)

BlockedStore = Union[BlockedEmployeeStore, InMemoryBlockedEmployeeStore]

MSG_NOT_SIGNED_IN = "Sign in to scan live timecard data"
MSG_MODEL_NOT_READY = "Isolation Forest model not ready"
MSG_SCAN_IN_PROGRESS = "Scan already in progress"
MSG_NO_ENTRIES = "No completed time entries found — employees need to clock in/out first"


class AnomalyEngine:
    """
    Timecard anomaly detection & reputation engine.

    Usage:
        engine = AnomalyEngine(data_source, store=BlockedEmployeeStore(path),
                               session=OperatorSession(token=token, role="admin"))
        engine.train_model()

        result = await engine.run_scan()
        engine.is_employee_blocked("emp-1")
        engine.resolve(record_id, "review_dismissed")
    """

    def __init__(
        self,
        data_source: TimecardDataSource,
        forest: Optional[TimecardIsolationForest] = None,
        ledger: Optional[ReputationLedger] = None,
        store: Optional[BlockedStore] = None,
        session: Optional[OperatorSession] = None,
        threshold: float = ANOMALY_SCORE_THRESHOLD,
    ):
        self.data_source = data_source
        self.forest = forest or TimecardIsolationForest()
        self.ledger = ledger or ReputationLedger()
        self.store = store or InMemoryBlockedEmployeeStore()
        self.session = session or OperatorSession()
        self.threshold = threshold

        self._records: List[AnomalyRecord] = []  # newest first
        self._seen_keys: Set[str] = set()
        self._employee_names: Dict[str, str] = {}

        self.scanning = False
        self.scan_count = 0
        self.last_scan_at: Optional[datetime] = None
        self.error: Optional[str] = None

        # Rehydrate so a restart keeps vetoing withdrawals until re-derived
        self._blocked: Set[str] = self.store.load()
        if self._blocked:
            logger.info(f"Restored {len(self._blocked)} blocked employees from storage")

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    @property
    def model_ready(self) -> bool:
        return self.forest.is_ready

    def train_model(self, training_data=None, samples: int = DEFAULT_TRAINING_SAMPLES, seed: Optional[int] = None) -> None:
        """
        Fit the forest once, on the synthetic normal prior unless
        `training_data` is supplied.
        """
        if training_data is None:
            training_data = generate_normal_training_data(samples, seed=seed)
        self.forest.fit(training_data, verbose=True)

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def run_scan(self) -> ScanResult:
        """
        Run one scan. Never raises for collaborator or data problems; the
        outcome is reported in the returned ScanResult and in `self.error`.
        """
        if not self.session.is_authenticated:
            return self._refuse(MSG_NOT_SIGNED_IN)
        if not self.model_ready:
            return self._refuse(MSG_MODEL_NOT_READY)
        if self.scanning:
            logger.info("Scan requested while another is running; skipped")
            return ScanResult(status=ScanStatus.SKIPPED, message=MSG_SCAN_IN_PROGRESS)

        self.scanning = True
        self.error = None
        logger.info(f"Starting anomaly scan #{self.scan_count + 1}")

        try:
            return await self._scan()
        finally:
            self.scanning = False

    def _refuse(self, message: str) -> ScanResult:
        self.error = message
        logger.info(f"Scan refused: {message}")
        return ScanResult(status=ScanStatus.SKIPPED, message=message)

    async def _scan(self) -> ScanResult:
        try:
            employees, pay_runs, schedules = await asyncio.gather(
                self.data_source.get_employees(),
                self.data_source.get_pay_runs(),
                self.data_source.get_schedules(),
            )
        except DataSourceError as e:
            self.error = f"Scan failed — could not reach backend: {e}"
            logger.warning(self.error)
            return ScanResult(status=ScanStatus.FAILED, message=self.error)
        except Exception as e:
            self.error = f"Scan failed — could not reach backend: {e}"
            logger.error(self.error, exc_info=True)
            return ScanResult(status=ScanStatus.FAILED, message=self.error)

        for employee in employees:
            self._employee_names[employee.id] = employee.name

        entries = await self._collect_entries(employees)
        if not entries:
            self.error = MSG_NO_ENTRIES
            return ScanResult(status=ScanStatus.NO_DATA, message=self.error)

        scanned: List[Tuple[TimeEntry, Employee, AnomalyFeatures]] = []
        for entry, employee in entries:
            features = extract_features(entry, employee, pay_runs, schedules)
            if features is not None:
                scanned.append((entry, employee, features))

        if not scanned:
            sample = entries[0][0]
            self.error = (
                f"Could not extract features from {len(entries)} time entries. "
                f'Sample entry: date="{sample.date}" clockIn="{sample.clock_in}" clockOut="{sample.clock_out}"'
            )
            logger.warning(self.error)
            return ScanResult(status=ScanStatus.NO_DATA, message=self.error)

        detections = self.forest.detect([f for _, _, f in scanned], self.threshold)

        new_records = []
        for detection in detections:
            entry, employee, features = scanned[detection.index]
            key = anomaly_key(employee.id, entry.date, entry.clock_in, entry.clock_out)
            if key in self._seen_keys:
                continue
            self._seen_keys.add(key)

            reputation = self.ledger.score(employee.id)
            record = create_record(
                employee_id=employee.id,
                employee_name=employee.name,
                score=detection.score,
                features=features,
                reputation=reputation,
                dedup_key=key,
            )
            self.ledger.penalise(employee.id, record.action)
            new_records.append(record)

            logger.info(
                f"Anomaly {record.id}: employee={employee.id} score={record.anomaly_score:.3f} "
                f"severity={record.severity.value} action={record.action.value}"
            )

        flagged = {d.index for d in detections}
        for index, (_, employee, _) in enumerate(scanned):
            if index not in flagged:
                self.ledger.recover(employee.id)

        # Newest first, also within one scan
        self._records = list(reversed(new_records)) + self._records
        self._refresh_blocked()

        self.scan_count += 1
        self.last_scan_at = utcnow()

        rebalances = sum(1 for r in new_records if r.action == AnomalyAction.USYC_REBALANCE)
        message = None
        if not new_records and self.scan_count == 1:
            message = f"Scanned {len(scanned)} time entries — no anomalies detected. All clear!"
            self.error = message

        logger.info(
            f"Scan #{self.scan_count} complete: {len(scanned)} entries scored, "
            f"{len(detections)} outliers, {len(new_records)} new anomalies"
        )

        return ScanResult(
            status=ScanStatus.COMPLETED,
            scanned_entries=len(scanned),
            new_anomalies=len(new_records),
            rebalance_triggered=rebalances,
            review_triggered=len(new_records) - rebalances,
            message=message,
            anomalies=[r.model_copy(deep=True) for r in new_records],
        )

    async def _collect_entries(self, employees: List[Employee]) -> List[Tuple[TimeEntry, Employee]]:
        """Completed entries for every employee, fetched concurrently."""
        results = await asyncio.gather(
            *(self.data_source.get_employee_time_entries(e.id) for e in employees),
            return_exceptions=True,
        )

        collected = []
        for employee, result in zip(employees, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(f"Skipping employee {employee.id}: could not fetch time entries ({result})")
                continue
            for entry in result:
                if entry.is_complete:
                    collected.append((entry, employee))
        return collected

    # ------------------------------------------------------------------
    # Resolution & blocking
    # ------------------------------------------------------------------

    def resolve(
        self,
        record_id: str,
        resolution: Union[str, AnomalyStatus],
        resolved_by: str = DEFAULT_RESOLVER,
    ) -> Optional[AnomalyRecord]:
        """
        Close an open anomaly as 'confirmed' or 'review_dismissed'.

        Returns:
            Copy of the updated record; None for an unknown id or a record
            that was already resolved (both are no-ops)

        Raises:
            ValueError: resolution is not a terminal status
        """
        status = parse_resolution(resolution)

        record = find_record(self._records, record_id)
        if record is None:
            logger.info(f"Resolve ignored: unknown anomaly id {record_id}")
            return None

        if not resolve_record(record, status, resolved_by):
            return None

        if status == AnomalyStatus.CONFIRMED:
            self.ledger.record_confirmation(record.employee_id)

        self._refresh_blocked()
        logger.info(f"Anomaly {record_id} resolved as {status.value} by {resolved_by}")
        return record.model_copy(deep=True)

    def set_rebalance_tx_hash(self, record_id: str, tx_hash: str) -> bool:
        """Attach the settlement reference of an executed mitigation."""
        record = find_record(self._records, record_id)
        if record is None:
            return False
        record.rebalance_tx_hash = tx_hash
        return True

    def _refresh_blocked(self) -> None:
        self._blocked = derive_blocked(self._records)
        self.store.save(self._blocked)

    def is_employee_blocked(self, employee_id: str) -> bool:
        """The only signal the withdrawal path may depend on."""
        return employee_id in self._blocked

    @property
    def blocked_employee_ids(self) -> Set[str]:
        return set(self._blocked)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def anomalies(
        self,
        employee_id: Optional[str] = None,
        status: Optional[Union[str, AnomalyStatus]] = None,
    ) -> List[AnomalyRecord]:
        """Records newest first, optionally filtered."""
        results = self._records
        if employee_id:
            results = [r for r in results if r.employee_id == employee_id]
        if status:
            status = AnomalyStatus(status)
            results = [r for r in results if r.status == status]
        return [r.model_copy(deep=True) for r in results]

    def get_reputation(self, employee_id: str) -> float:
        return self.ledger.score(employee_id)

    def reputations(self) -> List[ReputationRecord]:
        return self.ledger.records(self._employee_names)

    def summary(self) -> AnomalySummary:
        by_severity = {s.value: 0 for s in Severity}
        pending = 0
        rebalances = 0
        for record in self._records:
            by_severity[record.severity.value] += 1
            if record.status == AnomalyStatus.PENDING_REVIEW:
                pending += 1
            elif record.status == AnomalyStatus.REBALANCE_TRIGGERED:
                rebalances += 1

        average = self.ledger.average()
        return AnomalySummary(
            total_anomalies=len(self._records),
            pending_review=pending,
            rebalances_triggered=rebalances,
            avg_reputation_score=round(average) if average is not None else DEFAULT_REPUTATION,
            by_severity=by_severity,
            recent_anomalies=[r.model_copy(deep=True) for r in self._records[:RECENT_ANOMALIES_LIMIT]],
        )

    def status(self) -> dict:
        return {
            "scanning": self.scanning,
            "model_ready": self.model_ready,
            "error": self.error,
            "scan_count": self.scan_count,
            "last_scan_at": self.last_scan_at,
            "blocked_employees": len(self._blocked),
        }
