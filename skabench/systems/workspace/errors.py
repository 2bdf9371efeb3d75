"""
SKA Workbench — Workspace Error Hierarchy

All exceptions raised by the workspace: entry management, the identity
pool, and folder loading.

Expected empty outcomes (no files in a folder, nothing to save) are never
errors; they come back as zero-item reports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skabench.systems.workspace.types import LoadReport


class WorkspaceError(RuntimeError):
    """Base for all workspace errors."""


class FolderLoadError(WorkspaceError):
    """
    Not a single document in the folder could be parsed.

    The workspace has already been reset to a single new empty document
    when this is raised; ``report`` lists the per-file failures.
    """

    def __init__(self, message: str, report: LoadReport) -> None:
        super().__init__(message)
        self.report = report


class ReentrantMutationError(WorkspaceError):
    """A mutation was started while another one was still running."""


class DuplicateIdentityError(WorkspaceError):
    """A record with this CN is already in the pool."""


class UnknownIdentityError(WorkspaceError):
    """No record with this CN is in the pool."""
