"""Tacview real-time telemetry host and ACMI recorder."""

__version__ = "0.1.0"
