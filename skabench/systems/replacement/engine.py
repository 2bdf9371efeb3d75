"""
SKA Workbench — Replacement Engine

Replaces one person with another across every open document, in two
phases:

  simulate  compute a ReplacementPlan; reads the workspace, never mutates it
  commit    apply exactly the plan's changes inside one exclusive scope

A plan is only committable while it is still true: the selected pair must
be unchanged, the workspace revision must not have moved, and the plan
must not have been committed before.
"""

from __future__ import annotations

import structlog

from skabench.primitives.common import RoleKind
from skabench.systems.replacement.errors import StalePlanError
from skabench.systems.replacement.substitution import substitute_member
from skabench.systems.replacement.types import (
    ChangeKind,
    PlannedChange,
    ReplacementPlan,
    ReplacementResult,
)
from skabench.systems.workspace.types import DocumentEntry, WorkspaceEventKind
from skabench.systems.workspace.workspace import Workspace

logger = structlog.get_logger("skabench.replacement")


def _includes(entry: DocumentEntry, cn: str) -> bool:
    """A CN belongs to a document through its membership set or its roster."""
    return cn in entry.membership or entry.document.has_user(cn)


class ReplacementEngine:
    """Plans and commits "replace X with Y everywhere" over one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace
        self._selection: tuple[str, str] | None = None
        self._committed: set[str] = set()
        self._logger = logger.bind(component="replacement_engine")

    # ─── Selection ──────────────────────────────────────────────

    @property
    def selection(self) -> tuple[str, str] | None:
        return self._selection

    def select(self, outgoing: str, replacement: str) -> None:
        """Record the operator's current pair; plans for any other pair go stale."""
        self._selection = (outgoing.strip(), replacement.strip())

    # ─── Simulate ───────────────────────────────────────────────

    def simulate(
        self,
        outgoing: str | None = None,
        replacement: str | None = None,
    ) -> ReplacementPlan:
        """
        Compute the plan for a pair (or for the current selection).

        Passing a pair also selects it. Never raises: a pair that cannot be
        planned yields an empty plan with an explanation.
        """
        if outgoing is not None and replacement is not None:
            self.select(outgoing, replacement)

        revision = self._workspace.revision
        if self._selection is None:
            return ReplacementPlan(
                outgoing="",
                replacement="",
                revision=revision,
                explanation="Select an outgoing and a replacement identity first.",
            )

        out_cn, rep_cn = self._selection
        plan = ReplacementPlan(outgoing=out_cn, replacement=rep_cn, revision=revision)

        if not out_cn or not rep_cn:
            plan.explanation = "Both the outgoing and the replacement CN are required."
            return plan
        if out_cn == rep_cn:
            plan.explanation = "Outgoing and replacement are the same identity; nothing to do."
            return plan

        for index, entry in enumerate(self._workspace.entries):
            document = entry.document
            label = entry.display_label
            child = document.keys.child_name

            if _includes(entry, out_cn):
                if not _includes(entry, rep_cn):
                    plan.changes.append(
                        PlannedChange(
                            kind=ChangeKind.ADD_TO_ROSTER,
                            entry_index=index,
                            entry_label=label,
                        )
                    )
                plan.changes.append(
                    PlannedChange(
                        kind=ChangeKind.REMOVE_FROM_ROSTER,
                        entry_index=index,
                        entry_label=label,
                    )
                )

            for location, group in document.iter_groups():
                if out_cn in group.member_cns:
                    plan.changes.append(
                        PlannedChange(
                            kind=ChangeKind.SUBSTITUTE_IN_GROUP,
                            entry_index=index,
                            entry_label=label,
                            keys_child_name=child,
                            location=location,
                        )
                    )

        out_record = self._workspace.pool.get(out_cn)
        rep_record = self._workspace.pool.get(rep_cn)
        if out_record is not None and rep_record is not None:
            roles = {
                kind: [r for r in out_record.roles(kind) if r not in rep_record.roles(kind)]
                for kind in RoleKind
            }
            roles = {kind: values for kind, values in roles.items() if values}
            if roles:
                plan.changes.append(PlannedChange(kind=ChangeKind.TRANSFER_ROLES, roles=roles))

        if plan.is_empty:
            plan.explanation = (
                f"No changes needed: {out_cn} has no memberships and no roles to transfer."
            )

        self._logger.debug(
            "replacement_simulated",
            outgoing=out_cn,
            replacement=rep_cn,
            changes=len(plan.changes),
            revision=revision,
        )
        return plan

    # ─── Commit ─────────────────────────────────────────────────

    def _check_fresh(self, plan: ReplacementPlan) -> None:
        reason = ""
        if plan.plan_id in self._committed:
            reason = "plan was already committed"
        elif self._selection != (plan.outgoing, plan.replacement):
            reason = "selection changed since the plan was simulated"
        elif self._workspace.revision != plan.revision:
            reason = "workspace changed since the plan was simulated"
        if reason:
            self._logger.warning("stale_plan_rejected", plan_id=plan.plan_id, reason=reason)
            raise StalePlanError(f"Cannot commit plan {plan.plan_id}: {reason}")

    def commit(self, plan: ReplacementPlan) -> ReplacementResult:
        """
        Apply exactly the plan's changes. Raises StalePlanError when the plan
        no longer matches the workspace. An empty plan is a no-op.
        """
        result = ReplacementResult(
            plan_id=plan.plan_id,
            outgoing=plan.outgoing,
            replacement=plan.replacement,
        )
        if plan.is_empty:
            return result

        self._check_fresh(plan)
        out_cn, rep_cn = plan.outgoing, plan.replacement
        workspace = self._workspace

        touched: dict[int, None] = {}

        with workspace.exclusive("commit_replacement", WorkspaceEventKind.DOCUMENTS_CHANGED):
            for change in plan.changes:
                if change.kind == ChangeKind.TRANSFER_ROLES:
                    result.roles_transferred += self._transfer_roles(out_cn, rep_cn)
                    continue

                index = change.entry_index
                if index is None:
                    continue
                entry = workspace.entry(index)
                document = entry.document

                if change.kind == ChangeKind.SUBSTITUTE_IN_GROUP:
                    group = document.group_at(change.location) if change.location else None
                    if group is None:
                        result.warnings.append(
                            f"{change.entry_label}: group no longer exists, skipped"
                        )
                        continue
                    group.member_cns = substitute_member(group.member_cns, out_cn, rep_cn)
                    result.substituted += 1
                    touched.setdefault(index, None)

                elif change.kind == ChangeKind.ADD_TO_ROSTER:
                    record = workspace.pool.get(rep_cn)
                    if record is None:
                        message = (
                            f"{change.entry_label}: {rep_cn} is not in the pool, "
                            "not added to the user list"
                        )
                        self._logger.warning("replacement_not_in_pool", cn=rep_cn)
                        result.warnings.append(message)
                        continue
                    # Both views are edited in place; other unsaved inclusions stay.
                    if not _includes(entry, rep_cn):
                        result.added_to_rosters += 1
                    entry.membership.add(rep_cn)
                    if not document.has_user(rep_cn):
                        document.users.append(record.copy_record())
                    touched.setdefault(index, None)

                elif change.kind == ChangeKind.REMOVE_FROM_ROSTER:
                    entry.membership.discard(out_cn)
                    document.users = [u for u in document.users if u.cn != out_cn]
                    result.removed_from_rosters += 1
                    touched.setdefault(index, None)

            for index in touched:
                entry = workspace.entry(index)
                entry.mark_dirty()
                result.touched_entries.append(entry.display_label)

        self._committed.add(plan.plan_id)
        self._logger.info(
            "replacement_committed",
            plan_id=plan.plan_id,
            outgoing=out_cn,
            replacement=rep_cn,
            substituted=result.substituted,
            added=result.added_to_rosters,
            removed=result.removed_from_rosters,
            roles_transferred=result.roles_transferred,
            entries=len(result.touched_entries),
        )
        return result

    def _transfer_roles(self, outgoing: str, replacement: str) -> int:
        """Union outgoing's roles into replacement, then clear outgoing's."""
        out_record = self._workspace.pool.get(outgoing)
        rep_record = self._workspace.pool.get(replacement)
        if out_record is None or rep_record is None:
            return 0
        moved = 0
        for kind in RoleKind:
            moved += len(rep_record.grant_roles(kind, out_record.roles(kind)))
        out_record.clear_roles()
        return moved
