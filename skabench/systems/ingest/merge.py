"""
SKA Workbench — External Merge Importer

Folds a foreign record set (typically a CSV export, the source of truth
for contact data and certificates) into the workspace.

Unlike pool synthesis, the external source wins: every non-empty incoming
scalar and certificate overwrites the current value. Roles are unioned.
Empty incoming values never erase anything.
"""

from __future__ import annotations

from typing import Iterable

import structlog
from pydantic import Field

from skabench.primitives.common import MergeRule, SkaBaseModel
from skabench.primitives.identity import IdentityRecord
from skabench.systems.workspace.merge import merge_identity
from skabench.systems.workspace.types import DocumentEntry, WorkspaceEventKind
from skabench.systems.workspace.workspace import Workspace

logger = structlog.get_logger("skabench.ingest.merge")


class ImportResult(SkaBaseModel):
    updated: list[str] = Field(default_factory=list)             # CNs whose record changed
    added: list[str] = Field(default_factory=list)               # CNs new to the target
    certificate_changes: list[str] = Field(default_factory=list)  # CNs whose cert was replaced

    @property
    def changed(self) -> bool:
        return bool(self.updated or self.added)

    def describe(self) -> str:
        if not self.changed:
            return "All users are up to date. No changes needed."
        lines: list[str] = []
        if self.updated:
            lines.append(f"{len(self.updated)} user(s) updated")
        if self.certificate_changes:
            lines.append(f"{len(self.certificate_changes)} certificate(s) updated:")
            lines.extend(f"  * {cn}" for cn in self.certificate_changes)
        if self.added:
            lines.append(f"{len(self.added)} new user(s) added:")
            lines.extend(f"  * {cn}" for cn in self.added)
        return "\n".join(lines)


def _replaces_certificate(current: IdentityRecord, incoming: IdentityRecord) -> bool:
    return bool(
        incoming.certificate
        and current.certificate
        and incoming.certificate != current.certificate
    )


def _refresh(current: IdentityRecord, incoming: IdentityRecord) -> list[str]:
    return merge_identity(
        current,
        incoming,
        certificate=MergeRule.OVERWRITE,
        scalars=MergeRule.OVERWRITE,
    )


class ExternalMergeImporter:
    """Applies imported records to the pool or to a single document's roster."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace
        self._logger = logger.bind(component="external_merge")

    def fold_into_pool(
        self,
        records: Iterable[IdentityRecord],
        include_in: DocumentEntry | None = None,
    ) -> ImportResult:
        """
        Refresh existing pool records and append unknown CNs to the pool.

        New CNs are also included in ``include_in`` when given. When anything
        changed, every entry is marked dirty since any roster may need
        regenerating.

        ``name`` is a scalar like the others: a non-empty incoming name
        replaces the pool's display name, not only contact data and IDs.
        """
        result = ImportResult()
        records = [r for r in records if r.cn]
        if not records:
            return result

        workspace = self._workspace
        with workspace.exclusive("fold_into_pool", WorkspaceEventKind.POOL_CHANGED):
            for incoming in records:
                current = workspace.pool.get(incoming.cn)
                if current is None:
                    workspace.pool.add(incoming.copy_record())
                    result.added.append(incoming.cn)
                    if include_in is not None:
                        include_in.membership.add(incoming.cn)
                    continue
                if _replaces_certificate(current, incoming):
                    result.certificate_changes.append(incoming.cn)
                if _refresh(current, incoming):
                    result.updated.append(incoming.cn)

            if result.changed:
                for entry in workspace.entries:
                    entry.mark_dirty()

        self._logger.info(
            "pool_import_applied",
            updated=len(result.updated),
            added=len(result.added),
            certificate_changes=len(result.certificate_changes),
        )
        return result

    def fold_into_roster(
        self,
        entry: DocumentEntry,
        records: Iterable[IdentityRecord],
        *,
        update_existing: bool = True,
        add_new: bool = True,
    ) -> ImportResult:
        """
        Single-document mode: refresh the entry's own roster records and
        optionally append unknown CNs to it.

        Rosters are regenerated from the pool on save, so every change made
        here is mirrored into the pool: unknown CNs are added to it and
        refreshed fields overwrite the pool record. Other documents holding
        the same CN pick the refreshed record up at their next save.
        """
        result = ImportResult()
        records = [r for r in records if r.cn]
        if not records:
            return result

        document = entry.document
        with self._workspace.exclusive("fold_into_roster", WorkspaceEventKind.DOCUMENTS_CHANGED):
            for incoming in records:
                current = document.find_user(incoming.cn)
                if current is None:
                    if add_new:
                        added = incoming.copy_record()
                        document.users.append(added)
                        entry.membership.add(added.cn)
                        self._mirror_into_pool(added, incoming, refresh=update_existing)
                        result.added.append(incoming.cn)
                    continue
                if incoming.certificate and incoming.certificate != current.certificate:
                    result.certificate_changes.append(incoming.cn)
                if update_existing:
                    if _refresh(current, incoming):
                        result.updated.append(incoming.cn)
                    self._mirror_into_pool(current, incoming)

            if not update_existing:
                result.certificate_changes = []
            if result.changed:
                entry.mark_dirty()

        self._logger.info(
            "roster_import_applied",
            entry=entry.display_label,
            updated=len(result.updated),
            added=len(result.added),
        )
        return result

    def _mirror_into_pool(
        self,
        roster_record: IdentityRecord,
        incoming: IdentityRecord,
        *,
        refresh: bool = True,
    ) -> None:
        pooled = self._workspace.pool.get(roster_record.cn)
        if pooled is None:
            self._workspace.pool.add(roster_record.copy_record())
        elif refresh:
            _refresh(pooled, incoming)
