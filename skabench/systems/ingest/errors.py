"""
SKA Workbench — Ingest Errors
"""

from __future__ import annotations


class TabularImportError(RuntimeError):
    """A tabular export could not be read at all (unreadable, malformed or empty)."""
