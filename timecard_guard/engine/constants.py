"""Tunable policy constants for scoring, reputation and escalation."""

# Isolation Forest score above which an entry is an outlier
ANOMALY_SCORE_THRESHOLD = 0.55

# Severity bands (score >= band)
SEVERITY_CRITICAL = 0.85
SEVERITY_HIGH = 0.72
SEVERITY_MEDIUM = 0.60

# Score above which the reasoner calls the entry a strong outlier
STRONG_OUTLIER_SCORE = 0.8

# Reputation below this escalates straight to automatic mitigation
LOW_REPUTATION_THRESHOLD = 40

DEFAULT_REPUTATION = 75.0
MIN_REPUTATION = 0.0
MAX_REPUTATION = 100.0

REPUTATION_PENALTY_REBALANCE = 8.0
REPUTATION_PENALTY_REVIEW = 4.0
REPUTATION_RECOVERY = 0.5

AUTO_SCAN_INTERVAL_SECONDS = 60

BLOCKED_EMPLOYEES_KEY = "anomaly_blocked_employees"

RECENT_ANOMALIES_LIMIT = 5

DEFAULT_RESOLVER = "ceo"
