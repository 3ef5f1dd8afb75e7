"""Telemetry-aware scheduling: policies, metrics, strategies, an enforcer and extender handlers."""

__version__ = "0.1.0"