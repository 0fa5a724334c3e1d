"""
Timecard Anomaly Detection & Reputation Engine
==============================================

This package implements the advisory layer that sits beside payroll:
- Feature extraction from completed clock-in/clock-out records
- Unsupervised outlier scoring (Isolation Forest on a synthetic prior)
- Per-employee reputation with penalty/recovery hysteresis
- Escalation to manual review or automatic mitigation
- Withdrawal blocking derived from open escalations
"""

__version__ = "1.0.0"
__status__ = "Production"
