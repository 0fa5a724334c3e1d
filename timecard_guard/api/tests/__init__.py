"""Tests for timecard_guard.api."""
