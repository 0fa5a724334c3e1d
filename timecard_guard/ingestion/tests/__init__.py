"""Tests for timecard_guard.ingestion."""
