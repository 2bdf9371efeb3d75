"""
Tests for the identity merge policy.

Covers:
  - Fill-only vs overwrite for scalars and certificates
  - Empty incoming values never erase
  - Role union: ordered, duplicate-free, commutative, associative
  - CN mismatch rejection
"""

from __future__ import annotations

import pytest

from skabench.primitives.common import MergeRule, RoleKind
from skabench.primitives.identity import IdentityRecord
from skabench.systems.workspace.merge import merge_identity


def _make_record(cn: str = "A1", **fields) -> IdentityRecord:
    return IdentityRecord(cn=cn, **fields)


class TestFillOnly:
    def test_alice_keeps_email_and_gains_certificate(self):
        target = _make_record(email="a@x.com", certificate="")
        incoming = _make_record(email="", certificate="C1")

        merge_identity(target, incoming, certificate=MergeRule.FILL_ONLY)

        assert target.email == "a@x.com"
        assert target.certificate == "C1"

    def test_existing_values_are_not_overwritten(self):
        target = _make_record(name="Alice", certificate="C1")
        incoming = _make_record(name="Alicia", certificate="C2")

        changed = merge_identity(target, incoming, certificate=MergeRule.FILL_ONLY)

        assert target.name == "Alice"
        assert target.certificate == "C1"
        assert changed == []

    def test_returns_changed_fields(self):
        target = _make_record(name="Alice")
        incoming = _make_record(email="a@x.com", user_id_integration="int-1")

        changed = merge_identity(target, incoming, certificate=MergeRule.FILL_ONLY)

        assert changed == ["email", "user_id_integration"]

    def test_self_merge_is_idempotent(self):
        record = _make_record(
            name="Alice",
            email="a@x.com",
            certificate="C1",
            org_owner_of=["Org A"],
        )
        before = record.model_dump()

        merge_identity(record, record.copy_record(), certificate=MergeRule.FILL_ONLY)

        assert record.model_dump() == before


class TestOverwrite:
    def test_certificate_overwrite_is_independent_of_scalars(self):
        target = _make_record(email="old@x.com", certificate="C1")
        incoming = _make_record(email="new@x.com", certificate="C2")

        merge_identity(target, incoming, certificate=MergeRule.OVERWRITE)

        assert target.certificate == "C2"
        assert target.email == "old@x.com"

    def test_scalar_overwrite(self):
        target = _make_record(name="Alice", email="old@x.com")
        incoming = _make_record(name="Alice B", email="new@x.com")

        merge_identity(
            target,
            incoming,
            certificate=MergeRule.OVERWRITE,
            scalars=MergeRule.OVERWRITE,
        )

        assert target.name == "Alice B"
        assert target.email == "new@x.com"

    def test_empty_incoming_never_erases(self):
        target = _make_record(email="a@x.com", certificate="C1")
        incoming = _make_record()

        changed = merge_identity(
            target,
            incoming,
            certificate=MergeRule.OVERWRITE,
            scalars=MergeRule.OVERWRITE,
        )

        assert target.email == "a@x.com"
        assert target.certificate == "C1"
        assert changed == []


class TestRoles:
    def test_roles_are_unioned_in_order(self):
        target = _make_record(org_owner_of=["Org A", "Org B"])
        incoming = _make_record(org_owner_of=["Org B", "Org C"], org_op_of=["Org X"])

        changed = merge_identity(target, incoming, certificate=MergeRule.FILL_ONLY)

        assert target.org_owner_of == ["Org A", "Org B", "Org C"]
        assert target.org_op_of == ["Org X"]
        assert RoleKind.OWNER.value in changed
        assert RoleKind.OPERATOR.value in changed

    def test_role_merge_is_commutative_as_sets(self):
        a = _make_record(org_sec_off_of=["X", "Y"])
        b = _make_record(org_sec_off_of=["Y", "Z"])

        ab = a.copy_record()
        merge_identity(ab, b, certificate=MergeRule.FILL_ONLY)
        ba = b.copy_record()
        merge_identity(ba, a, certificate=MergeRule.FILL_ONLY)

        assert set(ab.org_sec_off_of) == set(ba.org_sec_off_of) == {"X", "Y", "Z"}

    def test_role_merge_is_associative(self):
        a = _make_record(org_op_of=["1"])
        b = _make_record(org_op_of=["2"])
        c = _make_record(org_op_of=["3", "1"])

        left = a.copy_record()
        merge_identity(left, b, certificate=MergeRule.FILL_ONLY)
        merge_identity(left, c, certificate=MergeRule.FILL_ONLY)

        bc = b.copy_record()
        merge_identity(bc, c, certificate=MergeRule.FILL_ONLY)
        right = a.copy_record()
        merge_identity(right, bc, certificate=MergeRule.FILL_ONLY)

        assert left.org_op_of == right.org_op_of == ["1", "2", "3"]


class TestMismatch:
    def test_different_cns_raise(self):
        with pytest.raises(ValueError, match="different CNs"):
            merge_identity(
                _make_record("A1"),
                _make_record("B1"),
                certificate=MergeRule.FILL_ONLY,
            )
