"""
Tests for the ReplacementEngine.

Covers:
  - Simulation never mutates the workspace
  - Empty plans carry an explanation
  - Planned changes: roster add/remove, group substitution, role transfer
  - Commit applies exactly the plan and marks touched entries dirty
  - Stale plans are rejected (selection change, workspace change, re-commit)
  - Groups are found in every section, operation, boundary and the keys block
  - Membership-only inclusions count as presence; unsaved inclusions survive
"""

from __future__ import annotations

import pytest

from skabench.primitives.common import OperationKind, RoleKind, SectionKind
from skabench.primitives.document import KEYS_SCOPE, Boundary, DocumentModel, Group
from skabench.primitives.identity import IdentityRecord
from skabench.systems.replacement.engine import ReplacementEngine
from skabench.systems.replacement.errors import StalePlanError
from skabench.systems.replacement.types import ChangeKind
from skabench.systems.workspace.roster import sync_entry_roster
from skabench.systems.workspace.synthesis import synthesize_pool
from skabench.systems.workspace.types import DocumentEntry
from skabench.systems.workspace.workspace import Workspace


def _make_document(module: str, cns: list[str], group_members: list[str]) -> DocumentModel:
    document = DocumentModel(
        module_name=module,
        users=[IdentityRecord(cn=cn, name=f"Name {cn}") for cn in cns],
    )
    document.organization.operations.use.boundaries = [
        Boundary(groups=[Group(quorum=2, member_cns=list(group_members))])
    ]
    return document


def _make_workspace(*documents: DocumentModel) -> Workspace:
    workspace = Workspace()
    workspace.replace_entries(DocumentEntry.loaded(d, None) for d in documents)
    synthesize_pool(workspace)
    return workspace


def _standard_workspace() -> Workspace:
    return _make_workspace(
        _make_document("alpha", ["A1", "B1", "C1"], ["A1", "B1", "C1"]),
        _make_document("beta", ["B1", "D1"], ["B1", "D1"]),
    )


def _group(workspace: Workspace, index: int) -> Group:
    return workspace.entry(index).document.organization.operations.use.boundaries[0].groups[0]


class TestSimulate:
    def test_no_selection_yields_explained_empty_plan(self):
        plan = ReplacementEngine(_standard_workspace()).simulate()

        assert plan.is_empty
        assert "Select" in plan.explanation

    def test_same_identity_yields_empty_plan(self):
        plan = ReplacementEngine(_standard_workspace()).simulate("A1", "A1")

        assert plan.is_empty
        assert "same identity" in plan.explanation

    def test_blank_cn_yields_empty_plan(self):
        plan = ReplacementEngine(_standard_workspace()).simulate("A1", "  ")

        assert plan.is_empty
        assert plan.explanation

    def test_unreferenced_outgoing_yields_empty_plan(self):
        plan = ReplacementEngine(_standard_workspace()).simulate("NOBODY", "D1")

        assert plan.is_empty
        assert plan.explanation.startswith("No changes needed: NOBODY")

    def test_plan_lists_roster_and_group_changes(self):
        plan = ReplacementEngine(_standard_workspace()).simulate("A1", "D1")

        kinds = [(c.kind, c.entry_index) for c in plan.changes]
        assert kinds == [
            (ChangeKind.ADD_TO_ROSTER, 0),
            (ChangeKind.REMOVE_FROM_ROSTER, 0),
            (ChangeKind.SUBSTITUTE_IN_GROUP, 0),
        ]

    def test_no_add_when_replacement_already_in_roster(self):
        plan = ReplacementEngine(_standard_workspace()).simulate("B1", "D1")

        assert plan.count(ChangeKind.ADD_TO_ROSTER) == 1
        assert plan.count(ChangeKind.REMOVE_FROM_ROSTER) == 2
        assert plan.count(ChangeKind.SUBSTITUTE_IN_GROUP) == 2

    def test_role_transfer_planned_for_missing_roles(self):
        workspace = _standard_workspace()
        workspace.pool.require("A1").org_owner_of = ["Org X", "Org Y"]
        workspace.pool.require("D1").org_owner_of = ["Org Y"]

        plan = ReplacementEngine(workspace).simulate("A1", "D1")

        (transfer,) = [c for c in plan.changes if c.kind == ChangeKind.TRANSFER_ROLES]
        assert transfer.entry_index is None
        assert transfer.roles == {RoleKind.OWNER: ["Org X"]}

    def test_simulation_does_not_mutate(self):
        workspace = _standard_workspace()
        before_revision = workspace.revision
        before = [e.document.model_dump() for e in workspace.entries]

        ReplacementEngine(workspace).simulate("A1", "D1")

        assert workspace.revision == before_revision
        assert [e.document.model_dump() for e in workspace.entries] == before
        assert not workspace.has_unsaved_changes

    def test_describe_preview(self):
        workspace = _standard_workspace()
        workspace.pool.require("A1").org_op_of = ["Org Z"]

        text = ReplacementEngine(workspace).simulate("A1", "D1").describe()

        assert "--- alpha (new) ---" in text
        assert "  * Add D1 to user list" in text
        assert "  * Remove A1 from user list" in text
        assert "organization > use > boundary 1 > group 1: A1 -> D1" in text
        assert "--- Org Role Transfers (pool level) ---" in text
        assert 'Org Op: transfer "Org Z"' in text
        assert text.endswith("Total: 4 change(s) to apply.")


class TestCommit:
    def test_commit_applies_plan(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)
        plan = engine.simulate("A1", "D1")

        result = engine.commit(plan)

        alpha = workspace.entry(0)
        assert _group(workspace, 0).member_cns == ["D1", "B1", "C1"]
        assert alpha.document.roster_cns() == ["B1", "C1", "D1"]
        assert alpha.membership == {"B1", "C1", "D1"}
        assert alpha.dirty
        assert not workspace.entry(1).dirty
        assert result.substituted == 1
        assert result.added_to_rosters == 1
        assert result.removed_from_rosters == 1
        assert result.touched_entries == ["alpha (new)"]

    def test_replacement_already_in_group(self):
        workspace = _make_workspace(
            _make_document("alpha", ["A1", "B1", "C1", "D1"], ["D1", "A1", "B1", "C1"]),
        )
        engine = ReplacementEngine(workspace)

        engine.commit(engine.simulate("A1", "D1"))

        assert _group(workspace, 0).member_cns == ["D1", "B1", "C1"]

    def test_outgoing_absent_everywhere_after_commit(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)

        engine.commit(engine.simulate("B1", "D1"))

        for entry in workspace.entries:
            assert "B1" not in entry.document.roster_cns()
            assert "B1" not in entry.document.referenced_member_cns()
            assert "B1" not in entry.membership
        assert _group(workspace, 1).member_cns == ["D1"]

    def test_roles_are_transferred_and_cleared(self):
        workspace = _standard_workspace()
        workspace.pool.require("A1").org_owner_of = ["Org X"]
        workspace.pool.require("A1").org_sec_off_of = ["Org S"]
        workspace.pool.require("D1").org_owner_of = ["Org Y"]
        engine = ReplacementEngine(workspace)

        result = engine.commit(engine.simulate("A1", "D1"))

        replacement = workspace.pool.require("D1")
        assert replacement.org_owner_of == ["Org Y", "Org X"]
        assert replacement.org_sec_off_of == ["Org S"]
        assert not workspace.pool.require("A1").has_roles
        assert result.roles_transferred == 2

    def test_replacement_missing_from_pool_warns(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)

        result = engine.commit(engine.simulate("A1", "Z9"))

        assert result.added_to_rosters == 0
        assert any("not in the pool" in w for w in result.warnings)
        assert _group(workspace, 0).member_cns == ["Z9", "B1", "C1"]

    def test_empty_plan_commit_is_a_no_op(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)
        before = workspace.revision

        result = engine.commit(engine.simulate("NOBODY", "D1"))

        assert result.applied == 0
        assert workspace.revision == before

    def test_commit_bumps_revision_once(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)
        before = workspace.revision

        engine.commit(engine.simulate("A1", "D1"))

        assert workspace.revision == before + 1


class TestStalePlans:
    def test_changed_selection_rejects_plan(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)
        plan = engine.simulate("A1", "D1")

        engine.select("B1", "D1")

        with pytest.raises(StalePlanError, match="selection changed"):
            engine.commit(plan)
        assert _group(workspace, 0).member_cns == ["A1", "B1", "C1"]

    def test_workspace_mutation_rejects_plan(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)
        plan = engine.simulate("A1", "D1")

        workspace.set_membership(workspace.entry(1), "C1", True)

        with pytest.raises(StalePlanError, match="workspace changed"):
            engine.commit(plan)

    def test_plan_cannot_be_committed_twice(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)
        plan = engine.simulate("A1", "D1")
        engine.commit(plan)

        with pytest.raises(StalePlanError, match="already committed"):
            engine.commit(plan)

    def test_resimulated_plan_is_committable(self):
        workspace = _standard_workspace()
        engine = ReplacementEngine(workspace)
        engine.simulate("A1", "D1")
        workspace.mark_all_dirty()

        result = engine.commit(engine.simulate())

        assert result.substituted == 1


def _spread_document() -> DocumentModel:
    """A1 sits in groups of several sections, operations and boundaries."""
    document = DocumentModel(
        module_name="spread",
        users=[IdentityRecord(cn="A1"), IdentityRecord(cn="B1")],
    )
    document.organization.operations.use.boundaries = [
        Boundary(groups=[Group(member_cns=["A1", "B1"])])
    ]
    document.ska_plus.operations.modify.boundaries = [
        Boundary(groups=[Group(member_cns=["B1"])]),
        Boundary(groups=[Group(member_cns=["A1"])]),
    ]
    document.ska_modify.operations.block.boundaries = [
        Boundary(groups=[Group(member_cns=["B1"]), Group(name="ops", member_cns=["B1", "A1"])])
    ]
    document.keys.child_name = "proto"
    document.keys.operations.unblock.boundaries = [
        Boundary(groups=[Group(member_cns=["A1"])])
    ]
    return document


class TestEveryGroupLocation:
    def test_plan_locates_outgoing_in_every_scope(self):
        workspace = _make_workspace(_spread_document(), _make_document("beta", ["D1"], ["D1"]))

        plan = ReplacementEngine(workspace).simulate("A1", "D1")

        locations = [
            (c.location.scope, c.location.operation, c.location.boundary_index,
             c.location.group_index)
            for c in plan.changes
            if c.kind == ChangeKind.SUBSTITUTE_IN_GROUP
        ]
        assert locations == [
            (SectionKind.ORGANIZATION.value, OperationKind.USE, 0, 0),
            (SectionKind.SKA_PLUS.value, OperationKind.MODIFY, 1, 0),
            (SectionKind.SKA_MODIFY.value, OperationKind.BLOCK, 0, 1),
            (KEYS_SCOPE, OperationKind.UNBLOCK, 0, 0),
        ]

    def test_commit_substitutes_in_every_scope(self):
        workspace = _make_workspace(_spread_document(), _make_document("beta", ["D1"], ["D1"]))
        engine = ReplacementEngine(workspace)

        result = engine.commit(engine.simulate("A1", "D1"))

        document = workspace.entry(0).document
        assert result.substituted == 4
        assert "A1" not in document.referenced_member_cns()
        assert document.ska_plus.operations.modify.boundaries[1].groups[0].member_cns == ["D1"]
        assert document.ska_modify.operations.block.boundaries[0].groups[1].member_cns == [
            "B1",
            "D1",
        ]
        assert document.keys.operations.unblock.boundaries[0].groups[0].member_cns == ["D1"]


class TestMembershipViews:
    def test_unsaved_inclusions_survive_commit(self):
        workspace = _standard_workspace()
        alpha = workspace.entry(0)
        workspace.pool.add(IdentityRecord(cn="X1"))
        workspace.set_membership(alpha, "X1", True)
        engine = ReplacementEngine(workspace)

        engine.commit(engine.simulate("A1", "D1"))

        assert alpha.membership == {"B1", "C1", "D1", "X1"}

    def test_outgoing_included_only_by_membership_is_removed(self):
        workspace = _make_workspace(
            _make_document("alpha", ["B1"], ["A1", "B1"]),
            _make_document("beta", ["A1", "D1"], ["D1"]),
        )
        alpha = workspace.entry(0)
        workspace.set_membership(alpha, "A1", True)
        engine = ReplacementEngine(workspace)

        plan = engine.simulate("A1", "D1")
        result = engine.commit(plan)

        assert [(c.kind, c.entry_index) for c in plan.changes][:2] == [
            (ChangeKind.ADD_TO_ROSTER, 0),
            (ChangeKind.REMOVE_FROM_ROSTER, 0),
        ]
        assert alpha.membership == {"B1", "D1"}
        assert result.added_to_rosters == 1
        assert [u.cn for u in sync_entry_roster(workspace, alpha)] == ["B1", "D1"]

    def test_replacement_included_only_by_membership_is_not_added_twice(self):
        workspace = _standard_workspace()
        alpha = workspace.entry(0)
        workspace.set_membership(alpha, "D1", True)
        engine = ReplacementEngine(workspace)

        plan = engine.simulate("A1", "D1")
        engine.commit(plan)

        assert plan.count(ChangeKind.ADD_TO_ROSTER) == 0
        assert alpha.membership == {"B1", "C1", "D1"}
