"""
SKA Workbench — Workspace Type Definitions

Document entries, the per-session context, and the reports returned by
load, synthesis and save operations.
"""

from __future__ import annotations

import enum
from pathlib import Path

from pydantic import Field

from skabench.primitives.common import Environment, SkaBaseModel
from skabench.primitives.document import DocumentModel

# loaded_version sentinel for a document that has never been saved.
NEW_DOCUMENT_VERSION = -1


# ─── Document Entry ──────────────────────────────────────────────


class DocumentEntry(SkaBaseModel):
    """
    A DocumentModel bound to its source file and per-file state.

    ``membership`` is the set of CNs included in this document; the roster
    is regenerated from it and the workspace pool right before saving.
    ``dirty`` is cleared only by this entry's own successful save.
    """

    document: DocumentModel
    source: Path | None = None
    loaded_version: int = NEW_DOCUMENT_VERSION
    dirty: bool = False
    membership: set[str] = Field(default_factory=set)

    @classmethod
    def loaded(cls, document: DocumentModel, source: Path | None) -> DocumentEntry:
        """Entry for a document just read from ``source``."""
        return cls(document=document, source=source, loaded_version=document.version)

    @classmethod
    def new(cls, document: DocumentModel | None = None) -> DocumentEntry:
        return cls(document=document or DocumentModel())

    @property
    def is_new(self) -> bool:
        return self.loaded_version == NEW_DOCUMENT_VERSION

    def mark_dirty(self) -> None:
        self.dirty = True

    def mark_saved(self, source: Path | None = None) -> None:
        """Record a successful save; the only way ``dirty`` is cleared."""
        if source is not None:
            self.source = source
        self.loaded_version = self.document.version
        self.dirty = False

    @property
    def display_label(self) -> str:
        """``moduleName (filename)``, or just the filename."""
        filename = self.source.name if self.source is not None else "new"
        if not self.document.module_name:
            return filename
        return f"{self.document.module_name} ({filename})"

    @property
    def display_label_with_dirty(self) -> str:
        return f"{self.display_label} *" if self.dirty else self.display_label

    def __str__(self) -> str:
        return self.display_label_with_dirty


# ─── Session ─────────────────────────────────────────────────────


class SessionContext(SkaBaseModel):
    """
    Per-session operator choices that must not be asked twice.

    ``load_environment`` is None until the operator has chosen which user-ID
    namespace the documents were written for.
    """

    load_environment: Environment | None = None
    environment_name: str = ""   # last environment name embedded in filenames

    def resolve_load_environment(self, default: Environment) -> Environment:
        if self.load_environment is None:
            self.load_environment = default
        return self.load_environment


# ─── Reports ─────────────────────────────────────────────────────


class SynthesisReport(SkaBaseModel):
    pool_size: int = 0
    merged: int = 0           # later occurrences folded into an existing record
    skipped_blank: int = 0    # roster records without a CN


class LoadFailure(SkaBaseModel):
    path: Path
    error: str


class LoadReport(SkaBaseModel):
    folder: Path | None = None
    loaded: list[Path] = Field(default_factory=list)
    failures: list[LoadFailure] = Field(default_factory=list)
    pool_size: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.loaded and not self.failures


class VersionProposal(SkaBaseModel):
    """Advisory version bump for one dirty entry; declining never blocks saving."""

    entry_index: int
    label: str
    loaded_version: int
    current_version: int

    @property
    def needs_bump(self) -> bool:
        return self.loaded_version >= 0 and self.current_version <= self.loaded_version

    @property
    def proposed_version(self) -> int:
        return self.loaded_version + 1 if self.needs_bump else self.current_version

    def describe(self) -> str:
        if self.needs_bump:
            return f"{self.label}  v{self.current_version} -> v{self.proposed_version}  (bump)"
        return f"{self.label}  v{self.current_version}  (already incremented)"


class SaveFailure(SkaBaseModel):
    label: str
    error: str


class SaveReport(SkaBaseModel):
    saved: list[Path] = Field(default_factory=list)
    failures: list[SaveFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


# ─── Events ──────────────────────────────────────────────────────


class WorkspaceEventKind(enum.StrEnum):
    ENTRIES_CHANGED = "entries_changed"
    ACTIVE_CHANGED = "active_changed"
    POOL_CHANGED = "pool_changed"
    MEMBERSHIP_CHANGED = "membership_changed"
    DOCUMENTS_CHANGED = "documents_changed"
    SAVED = "saved"


class WorkspaceEvent(SkaBaseModel):
    kind: WorkspaceEventKind
    operation: str
    revision: int
