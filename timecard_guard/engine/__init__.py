"""Reputation, escalation, deduplication and scan orchestration."""
