"""
Test fixtures for deterministic testing.

This module provides:
- clinics: pinned pass clock, a healthy clinic document and metrics
- FakeMetricsProvider: in-memory provider with outages and hard failures
"""

from .clinics import NOW, FakeMetricsProvider, clinic_doc, days_ago, healthy_metrics

__all__ = ["NOW", "FakeMetricsProvider", "clinic_doc", "days_ago", "healthy_metrics"]
