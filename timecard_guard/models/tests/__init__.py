"""Tests for timecard_guard.models."""
