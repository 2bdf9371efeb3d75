"""
SKA Workbench — Replacement Errors
"""

from __future__ import annotations


class ReplacementError(RuntimeError):
    """Base for replacement engine errors."""


class StalePlanError(ReplacementError):
    """
    The plan no longer describes what a commit would do.

    Raised when the selected pair changed after simulation, the workspace
    was mutated since, or the plan was already committed. Simulate again.
    """
