"""
SKA Workbench — Workspace System

Multi-document workspace: the shared identity pool, per-document
membership, roster projection, version proposals and file operations.
"""

from skabench.systems.workspace.errors import (
    DuplicateIdentityError,
    FolderLoadError,
    ReentrantMutationError,
    UnknownIdentityError,
    WorkspaceError,
)
from skabench.systems.workspace.merge import merge_identity
from skabench.systems.workspace.roster import (
    membership_from_roster,
    project_roster,
    refresh_membership,
    sync_all_rosters,
    sync_entry_roster,
)
from skabench.systems.workspace.service import WorkspaceService, save_warnings
from skabench.systems.workspace.synthesis import build_pool, extend_pool, synthesize_pool
from skabench.systems.workspace.types import (
    NEW_DOCUMENT_VERSION,
    DocumentEntry,
    LoadFailure,
    LoadReport,
    SaveFailure,
    SaveReport,
    SessionContext,
    SynthesisReport,
    VersionProposal,
    WorkspaceEvent,
    WorkspaceEventKind,
)
from skabench.systems.workspace.versioning import (
    apply_version_bumps,
    propose_version_bumps,
    versioned_filename,
)
from skabench.systems.workspace.workspace import IdentityPool, Workspace

__all__ = [
    "NEW_DOCUMENT_VERSION",
    "DocumentEntry",
    "DuplicateIdentityError",
    "FolderLoadError",
    "IdentityPool",
    "LoadFailure",
    "LoadReport",
    "ReentrantMutationError",
    "SaveFailure",
    "SaveReport",
    "SessionContext",
    "SynthesisReport",
    "UnknownIdentityError",
    "VersionProposal",
    "Workspace",
    "WorkspaceError",
    "WorkspaceEvent",
    "WorkspaceEventKind",
    "WorkspaceService",
    "apply_version_bumps",
    "build_pool",
    "extend_pool",
    "membership_from_roster",
    "merge_identity",
    "project_roster",
    "propose_version_bumps",
    "refresh_membership",
    "save_warnings",
    "sync_all_rosters",
    "sync_entry_roster",
    "synthesize_pool",
    "versioned_filename",
]
