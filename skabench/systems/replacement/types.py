"""
SKA Workbench — Replacement Type Definitions

A ReplacementPlan is an inert list of changes computed by simulation.
Nothing is mutated until the plan is committed, and a commit applies
exactly the changes listed here.
"""

from __future__ import annotations

import enum

from pydantic import Field

from skabench.primitives.common import RoleKind, SkaBaseModel, new_id
from skabench.primitives.document import GroupLocation

_ROLE_LABELS: dict[RoleKind, str] = {
    RoleKind.OWNER: "Org Owner",
    RoleKind.SECURITY_OFFICER: "Org SecOff",
    RoleKind.OPERATOR: "Org Op",
}


class ChangeKind(enum.StrEnum):
    ADD_TO_ROSTER = "add_to_roster"
    REMOVE_FROM_ROSTER = "remove_from_roster"
    SUBSTITUTE_IN_GROUP = "substitute_in_group"
    TRANSFER_ROLES = "transfer_roles"


class PlannedChange(SkaBaseModel):
    """One atomic change. Pool-level changes carry no entry index."""

    kind: ChangeKind
    entry_index: int | None = None
    entry_label: str = ""
    keys_child_name: str = ""
    location: GroupLocation | None = None
    roles: dict[RoleKind, list[str]] = Field(default_factory=dict)

    def describe(self, outgoing: str, replacement: str) -> list[str]:
        if self.kind == ChangeKind.ADD_TO_ROSTER:
            return [f"Add {replacement} to user list"]
        if self.kind == ChangeKind.REMOVE_FROM_ROSTER:
            return [f"Remove {outgoing} from user list"]
        if self.kind == ChangeKind.SUBSTITUTE_IN_GROUP and self.location is not None:
            where = self.location.describe(self.keys_child_name)
            return [f"{where}: {outgoing} -> {replacement}"]
        return [
            f'{_ROLE_LABELS[kind]}: transfer "{role}"'
            for kind in RoleKind
            for role in self.roles.get(kind, [])
        ]


class ReplacementPlan(SkaBaseModel):
    """The preview of one replacement, tied to the workspace revision it saw."""

    plan_id: str = Field(default_factory=new_id)
    outgoing: str
    replacement: str
    revision: int
    changes: list[PlannedChange] = Field(default_factory=list)
    explanation: str = ""   # set when the plan is empty

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def count(self, kind: ChangeKind) -> int:
        return sum(1 for c in self.changes if c.kind == kind)

    def entry_indexes(self) -> list[int]:
        seen: dict[int, None] = {}
        for change in self.changes:
            if change.entry_index is not None:
                seen.setdefault(change.entry_index, None)
        return list(seen)

    def describe(self) -> str:
        """Operator-facing preview: per entry, then pool-level role transfers, then totals."""
        lines: list[str] = [f"Replace {self.outgoing} with {self.replacement}", ""]

        for index in self.entry_indexes():
            entry_changes = [c for c in self.changes if c.entry_index == index]
            lines.append(f"--- {entry_changes[0].entry_label} ---")
            for change in entry_changes:
                lines.extend(
                    f"  * {text}" for text in change.describe(self.outgoing, self.replacement)
                )
            lines.append("")

        pool_changes = [c for c in self.changes if c.entry_index is None]
        if pool_changes:
            lines.append("--- Org Role Transfers (pool level) ---")
            for change in pool_changes:
                lines.extend(
                    f"  * {text}" for text in change.describe(self.outgoing, self.replacement)
                )
            lines.append("")

        if self.is_empty:
            lines.append(self.explanation or "No changes needed.")
        else:
            lines.append(f"Total: {len(self.changes)} change(s) to apply.")
        return "\n".join(lines)


class ReplacementResult(SkaBaseModel):
    """What a commit actually did."""

    plan_id: str = ""
    outgoing: str = ""
    replacement: str = ""
    substituted: int = 0
    added_to_rosters: int = 0
    removed_from_rosters: int = 0
    roles_transferred: int = 0
    touched_entries: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def applied(self) -> int:
        return (
            self.substituted
            + self.added_to_rosters
            + self.removed_from_rosters
            + (1 if self.roles_transferred else 0)
        )
