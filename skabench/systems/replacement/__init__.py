"""
SKA Workbench — Replacement System

Bulk substitution of one identity for another across the workspace.
"""

from skabench.systems.replacement.engine import ReplacementEngine
from skabench.systems.replacement.errors import ReplacementError, StalePlanError
from skabench.systems.replacement.substitution import substitute_member
from skabench.systems.replacement.types import (
    ChangeKind,
    PlannedChange,
    ReplacementPlan,
    ReplacementResult,
)

__all__ = [
    "ChangeKind",
    "PlannedChange",
    "ReplacementEngine",
    "ReplacementError",
    "ReplacementPlan",
    "ReplacementResult",
    "StalePlanError",
    "substitute_member",
]
