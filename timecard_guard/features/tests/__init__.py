"""Tests for timecard_guard.features."""
