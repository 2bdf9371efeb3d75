"""
SKA Workbench — Workspace

An ordered collection of document entries that share one canonical
identity pool. The workspace is the single owner of all mutable state the
operator edits; every mutation runs inside ``exclusive()`` so that

  - a mutation can never start while another is still half-applied, and
  - listeners only hear about a change once it is complete.

Listeners are notified after the mutation scope has closed, so a listener
may itself start a new mutation.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterable, Iterator

import structlog

from skabench.primitives.identity import IdentityRecord
from skabench.systems.workspace.errors import (
    DuplicateIdentityError,
    ReentrantMutationError,
    UnknownIdentityError,
)
from skabench.systems.workspace.roster import refresh_membership
from skabench.systems.workspace.types import (
    DocumentEntry,
    SessionContext,
    WorkspaceEvent,
    WorkspaceEventKind,
)

logger = structlog.get_logger("skabench.workspace")

WorkspaceListener = Callable[[WorkspaceEvent], None]


# ─── Identity Pool ───────────────────────────────────────────────


class IdentityPool:
    """
    Canonical identity table keyed by CN, in first-seen order.

    The pool owns its records. Rosters hold copies made by the roster
    projector, never the pool's own instances.
    """

    def __init__(self, records: Iterable[IdentityRecord] = ()) -> None:
        self._records: dict[str, IdentityRecord] = {}
        for record in records:
            self.add(record)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[IdentityRecord]:
        return iter(list(self._records.values()))

    def __contains__(self, cn: object) -> bool:
        return cn in self._records

    def get(self, cn: str) -> IdentityRecord | None:
        return self._records.get(cn)

    def require(self, cn: str) -> IdentityRecord:
        record = self._records.get(cn)
        if record is None:
            raise UnknownIdentityError(f"No identity with CN {cn!r} in the pool")
        return record

    def add(self, record: IdentityRecord) -> IdentityRecord:
        if not record.cn:
            raise ValueError("Identity records in the pool must have a CN")
        if record.cn in self._records:
            raise DuplicateIdentityError(f"Identity {record.cn!r} is already in the pool")
        self._records[record.cn] = record
        return record

    def cns(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[IdentityRecord]:
        return list(self._records.values())

    def replace_all(self, records: Iterable[IdentityRecord]) -> None:
        self._records = {}
        for record in records:
            self.add(record)

    def clear(self) -> None:
        self._records = {}


# ─── Workspace ───────────────────────────────────────────────────


class Workspace:
    """
    Document entries, the identity pool, the active entry and the session.

    ``revision`` increases on every completed or aborted mutation. Plans and
    other derived views compare it to detect that the workspace moved
    underneath them.
    """

    def __init__(self, session: SessionContext | None = None) -> None:
        self._entries: list[DocumentEntry] = []
        self._active_index: int = -1
        self.pool = IdentityPool()
        self.session = session or SessionContext()

        self._revision: int = 0
        self._operation: str | None = None
        self._listeners: list[WorkspaceListener] = []

        self._logger = logger.bind(component="workspace")

    # ─── Mutation scope ─────────────────────────────────────────

    @contextmanager
    def exclusive(
        self,
        operation: str,
        kind: WorkspaceEventKind = WorkspaceEventKind.DOCUMENTS_CHANGED,
    ) -> Iterator[Workspace]:
        """
        Run one mutation. Raises ReentrantMutationError when another
        mutation is already in progress.
        """
        if self._operation is not None:
            self._logger.warning(
                "reentrant_mutation_rejected",
                running=self._operation,
                requested=operation,
            )
            raise ReentrantMutationError(
                f"Cannot start {operation!r} while {self._operation!r} is in progress"
            )

        self._operation = operation
        try:
            yield self
        finally:
            self._operation = None
            self._revision += 1

        self._notify(WorkspaceEvent(kind=kind, operation=operation, revision=self._revision))

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def is_mutating(self) -> bool:
        return self._operation is not None

    def subscribe(self, listener: WorkspaceListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: WorkspaceEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    # ─── Entries ────────────────────────────────────────────────

    @property
    def entries(self) -> list[DocumentEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    def entry(self, index: int) -> DocumentEntry:
        return self._entries[index]

    def index_of(self, entry: DocumentEntry) -> int:
        for i, candidate in enumerate(self._entries):
            if candidate is entry:
                return i
        raise ValueError("Entry is not part of this workspace")

    def find_by_module(self, module_name: str) -> DocumentEntry | None:
        for entry in self._entries:
            if entry.document.module_name == module_name:
                return entry
        return None

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def active_entry(self) -> DocumentEntry | None:
        if 0 <= self._active_index < len(self._entries):
            return self._entries[self._active_index]
        return None

    def set_active_index(self, index: int) -> None:
        if not -1 <= index < len(self._entries):
            raise IndexError(
                f"Active index {index} out of range for {len(self._entries)} entries"
            )
        with self.exclusive("set_active_index", WorkspaceEventKind.ACTIVE_CHANGED):
            self._active_index = index

    def add_entry(self, entry: DocumentEntry, *, activate: bool = True) -> int:
        """Append an entry, deriving its membership from its roster."""
        with self.exclusive("add_entry", WorkspaceEventKind.ENTRIES_CHANGED):
            refresh_membership(entry)
            self._entries.append(entry)
            index = len(self._entries) - 1
            if activate or self._active_index < 0:
                self._active_index = index
        return index

    def replace_entries(self, entries: Iterable[DocumentEntry]) -> None:
        """Swap in a fresh set of entries; the first becomes active."""
        with self.exclusive("replace_entries", WorkspaceEventKind.ENTRIES_CHANGED):
            self._entries = []
            for entry in entries:
                refresh_membership(entry)
                self._entries.append(entry)
            self._active_index = 0 if self._entries else -1

    def remove_entry(self, index: int) -> DocumentEntry:
        if not 0 <= index < len(self._entries):
            raise IndexError(f"No entry at index {index}")
        with self.exclusive("remove_entry", WorkspaceEventKind.ENTRIES_CHANGED):
            removed = self._entries.pop(index)
            if not self._entries:
                self._active_index = -1
            elif index <= self._active_index:
                self._active_index = max(0, self._active_index - 1)
        return removed

    def clear(self) -> None:
        """Drop every entry and empty the pool."""
        with self.exclusive("clear", WorkspaceEventKind.ENTRIES_CHANGED):
            self._entries = []
            self._active_index = -1
            self.pool.clear()

    def reset_to_new(self) -> DocumentEntry:
        """Clear and leave a single new, empty document active."""
        entry = DocumentEntry.new()
        with self.exclusive("reset_to_new", WorkspaceEventKind.ENTRIES_CHANGED):
            self._entries = [entry]
            self._active_index = 0
            self.pool.clear()
        return entry

    def dirty_entries(self) -> list[DocumentEntry]:
        return [e for e in self._entries if e.dirty]

    @property
    def has_unsaved_changes(self) -> bool:
        return any(e.dirty for e in self._entries)

    def mark_all_dirty(self) -> None:
        with self.exclusive("mark_all_dirty"):
            for entry in self._entries:
                entry.mark_dirty()

    # ─── Pool & membership ──────────────────────────────────────

    def add_identity(
        self,
        record: IdentityRecord,
        include_in: DocumentEntry | None = None,
    ) -> IdentityRecord:
        """Add a new person to the pool, optionally including them in one entry."""
        with self.exclusive("add_identity", WorkspaceEventKind.POOL_CHANGED):
            self.pool.add(record)
            if include_in is not None:
                include_in.membership.add(record.cn)
                include_in.mark_dirty()
        self._logger.info("identity_added", cn=record.cn)
        return record

    def set_membership(self, entry: DocumentEntry, cn: str, included: bool) -> bool:
        """Include or exclude a pool CN from one entry. Returns True on change."""
        self.pool.require(cn)
        if (cn in entry.membership) == included:
            return False
        with self.exclusive("set_membership", WorkspaceEventKind.MEMBERSHIP_CHANGED):
            if included:
                entry.membership.add(cn)
            else:
                entry.membership.discard(cn)
            entry.mark_dirty()
        return True

    def toggle_membership(self, entry: DocumentEntry, cn: str) -> bool:
        """Flip a CN's inclusion; returns the new state."""
        included = cn not in entry.membership
        self.set_membership(entry, cn, included)
        return included

    def entries_including(self, cn: str) -> list[DocumentEntry]:
        return [e for e in self._entries if cn in e.membership]
