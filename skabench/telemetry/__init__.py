"""
SKA Workbench — Telemetry

Structured logging setup.
"""

from skabench.telemetry.logging import setup_logging

__all__ = ["setup_logging"]
