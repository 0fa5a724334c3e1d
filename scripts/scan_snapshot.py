"""
Offline scan of an exported payroll snapshot.

    python scripts/scan_snapshot.py data/snapshot.json

The snapshot holds {"employees", "timeEntries", "payRuns", "schedules"} lists
shaped like the payroll API responses.
"""
import asyncio
import logging
import sys

from timecard_guard.engine.detector import AnomalyEngine
from timecard_guard.engine.types import OperatorSession
from timecard_guard.ingestion.data_source import InMemoryDataSource

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

if len(sys.argv) != 2:
    print("usage: python scripts/scan_snapshot.py <snapshot.json>")
    sys.exit(1)

source = InMemoryDataSource.from_snapshot(sys.argv[1])
engine = AnomalyEngine(source, session=OperatorSession(token="offline", role="admin"))
engine.train_model(seed=42)

result = asyncio.run(engine.run_scan())

print("\n" + "=" * 70)
print(f"Scan {result.status.value}: {result.scanned_entries} entries, {result.new_anomalies} anomalies")
if result.message:
    print(result.message)
print("=" * 70)

for record in engine.anomalies():
    print(
        f"{record.severity.value:<8} {record.anomaly_score:.3f}  {record.employee_name or record.employee_id:<20} "
        f"{record.action.value:<18} {', '.join(record.reasons)}"
    )

summary = engine.summary()
print("=" * 70)
print(f"Blocked employees: {sorted(engine.blocked_employee_ids)}")
print(f"Average reputation: {summary.avg_reputation_score}")
