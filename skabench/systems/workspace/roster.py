"""
SKA Workbench — Roster Projector

Each document keeps two views of who belongs to it:

  membership  set of CNs the operator included (edited in the workspace)
  roster      the document's embedded list of IdentityRecord copies (saved)

Roster → membership runs after load; later edits change the membership set
directly.
Membership → roster runs right before the document is serialized. The
projected roster never contains a CN outside the membership set, never
contains a duplicate, and never contains a CN the pool does not know.

The sync helpers mutate documents directly; callers run them inside the
workspace's exclusive scope.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from skabench.primitives.identity import IdentityRecord

if TYPE_CHECKING:
    from skabench.systems.workspace.types import DocumentEntry
    from skabench.systems.workspace.workspace import IdentityPool, Workspace


def project_roster(pool: IdentityPool, membership: Iterable[str]) -> list[IdentityRecord]:
    """Copies of the pool records named in ``membership``, in pool order."""
    included = set(membership)
    return [record.copy_record() for record in pool.records() if record.cn in included]


def membership_from_roster(roster: Iterable[IdentityRecord]) -> set[str]:
    return {record.cn for record in roster if record.cn}


def refresh_membership(entry: DocumentEntry) -> set[str]:
    """Rebuild ``entry.membership`` from its roster."""
    entry.membership = membership_from_roster(entry.document.users)
    return entry.membership


def sync_entry_roster(workspace: Workspace, entry: DocumentEntry) -> list[IdentityRecord]:
    """Regenerate one entry's roster from its membership and the pool."""
    entry.document.users = project_roster(workspace.pool, entry.membership)
    return entry.document.users


def sync_all_rosters(workspace: Workspace) -> int:
    """Regenerate every roster; returns the number of entries synced."""
    entries = workspace.entries
    for entry in entries:
        sync_entry_roster(workspace, entry)
    return len(entries)
