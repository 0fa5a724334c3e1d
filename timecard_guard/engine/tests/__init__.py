"""Tests for timecard_guard.engine."""
