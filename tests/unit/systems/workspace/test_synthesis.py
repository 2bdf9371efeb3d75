"""
Tests for pool synthesis.

Covers:
  - Pool CN set equals the union of roster CNs
  - First document wins, later ones only fill gaps (certificates too)
  - Blank CNs skipped and counted
  - Re-synthesis discards pool-only identities
  - extend_pool keeps them
"""

from __future__ import annotations

from skabench.primitives.document import DocumentModel
from skabench.primitives.identity import IdentityRecord
from skabench.systems.workspace.synthesis import build_pool, extend_pool, synthesize_pool
from skabench.systems.workspace.types import DocumentEntry
from skabench.systems.workspace.workspace import Workspace


def _make_entry(module: str, users: list[IdentityRecord]) -> DocumentEntry:
    return DocumentEntry.loaded(DocumentModel(module_name=module, users=users), None)


def _make_users(cns: list[str]) -> list[IdentityRecord]:
    return [IdentityRecord(cn=cn, name=f"Name {cn}") for cn in cns]


def _make_workspace(*entries: DocumentEntry) -> Workspace:
    workspace = Workspace()
    workspace.replace_entries(entries)
    return workspace


class TestSynthesizePool:
    def test_subset_documents_give_pool_of_largest(self):
        nine = [f"U{i}" for i in range(9)]
        five = nine[2:7]
        workspace = _make_workspace(
            _make_entry("big", _make_users(nine)),
            _make_entry("small", _make_users(five)),
        )

        report = synthesize_pool(workspace)

        assert report.pool_size == 9
        assert report.merged == 5
        assert workspace.pool.cns() == nine

    def test_pool_equals_union_of_rosters(self):
        workspace = _make_workspace(
            _make_entry("a", _make_users(["A1", "B1"])),
            _make_entry("b", _make_users(["C1", "A1"])),
            _make_entry("c", _make_users(["D1"])),
        )

        synthesize_pool(workspace)

        union = set()
        for entry in workspace.entries:
            union |= set(entry.document.roster_cns())
        assert set(workspace.pool.cns()) == union
        assert workspace.pool.cns() == ["A1", "B1", "C1", "D1"]

    def test_first_document_wins_and_later_fills(self):
        first = IdentityRecord(cn="A1", email="a@x.com", certificate="")
        second = IdentityRecord(cn="A1", email="other@x.com", certificate="C1", name="Alice")
        workspace = _make_workspace(_make_entry("a", [first]), _make_entry("b", [second]))

        synthesize_pool(workspace)

        record = workspace.pool.require("A1")
        assert record.email == "a@x.com"
        assert record.certificate == "C1"
        assert record.name == "Alice"

    def test_first_certificate_is_kept(self):
        workspace = _make_workspace(
            _make_entry("a", [IdentityRecord(cn="A1", certificate="C1")]),
            _make_entry("b", [IdentityRecord(cn="A1", certificate="C2")]),
        )

        synthesize_pool(workspace)

        assert workspace.pool.require("A1").certificate == "C1"

    def test_pool_records_are_copies(self):
        user = IdentityRecord(cn="A1", org_owner_of=["Org"])
        workspace = _make_workspace(_make_entry("a", [user]))

        synthesize_pool(workspace)
        workspace.pool.require("A1").org_owner_of.append("Other")

        assert user.org_owner_of == ["Org"]

    def test_blank_cns_are_skipped(self):
        users = [IdentityRecord(cn=""), IdentityRecord(cn="A1")]
        _, report = build_pool([_make_entry("a", users)])

        assert report.pool_size == 1
        assert report.skipped_blank == 1

    def test_resynthesis_rebuilds_from_rosters(self):
        workspace = _make_workspace(_make_entry("a", _make_users(["A1"])))
        synthesize_pool(workspace)
        workspace.add_identity(IdentityRecord(cn="POOL_ONLY"))

        synthesize_pool(workspace)

        assert workspace.pool.cns() == ["A1"]

    def test_synthesis_bumps_revision(self):
        workspace = _make_workspace(_make_entry("a", _make_users(["A1"])))
        before = workspace.revision

        synthesize_pool(workspace)

        assert workspace.revision > before


class TestExtendPool:
    def test_extend_keeps_pool_only_identities(self):
        workspace = _make_workspace(_make_entry("a", _make_users(["A1"])))
        synthesize_pool(workspace)
        workspace.add_identity(IdentityRecord(cn="POOL_ONLY"))

        extra = _make_entry("b", [IdentityRecord(cn="A1", email="a@x.com"), IdentityRecord(cn="B1")])
        workspace.add_entry(extra)
        report = extend_pool(workspace, extra)

        assert workspace.pool.cns() == ["A1", "POOL_ONLY", "B1"]
        assert workspace.pool.require("A1").email == "a@x.com"
        assert report.merged == 1
        assert report.pool_size == 3
