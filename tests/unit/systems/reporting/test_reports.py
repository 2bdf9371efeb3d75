"""
Tests for certificate inspection and CSV report generation.

Covers:
  - Certificate fields: subject, validity, serial, key usage, fingerprint
  - Blank and unparseable certificates
  - Membership rows: members, keys, empty groups, operations without boundaries
  - Users report sorted case-insensitively
"""

from __future__ import annotations

import csv
from datetime import datetime, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from skabench.primitives.document import Boundary, DocumentModel, Group
from skabench.primitives.identity import IdentityRecord
from skabench.systems.reporting.certificates import format_key_usage, inspect_certificate
from skabench.systems.reporting.generator import (
    MEMBERSHIP_HEADER,
    USER_HEADER,
    generate_reports,
    membership_rows,
    user_row,
)
from skabench.systems.workspace.types import DocumentEntry


def _make_certificate(cn: str = "Alice A1") -> str:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(0x1A2B)
        .not_valid_before(datetime(2025, 1, 1, tzinfo=timezone.utc))
        .not_valid_after(datetime(2027, 6, 30, tzinfo=timezone.utc))
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=True,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .sign(key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


def _read_csv(path) -> list[list[str]]:
    with open(path, encoding="utf-8", newline="") as f:
        return list(csv.reader(f))


class TestInspectCertificate:
    def test_extracts_fields(self):
        info = inspect_certificate(_make_certificate())

        assert info is not None
        assert info.subject == "CN=Alice A1"
        assert info.issuer == "CN=Alice A1"
        assert info.not_before == "2025-01-01"
        assert info.not_after == "2027-06-30"
        assert info.serial_number == "1A2B"
        assert info.key_usage == "digitalSignature, nonRepudiation"
        assert len(info.sha256_fingerprint.split(":")) == 32

    def test_markers_are_optional(self):
        pem = _make_certificate()
        body = "\n".join(line for line in pem.splitlines() if not line.startswith("-----"))

        info = inspect_certificate(body)

        assert info is not None
        assert info.serial_number == "1A2B"

    def test_blank_and_garbage(self):
        assert inspect_certificate("") is None
        assert inspect_certificate("   ") is None
        assert inspect_certificate("not a certificate") is None

    def test_key_usage_not_set(self):
        assert format_key_usage(None) == "(not set)"


class TestMembershipRows:
    def test_empty_document_has_one_row_per_operation(self):
        rows = list(membership_rows(DocumentModel(module_name="m"), {}))

        assert len(rows) == 16
        assert all(row[-1] == "(no boundaries)" for row in rows)
        assert {row[1] for row in rows} == {"Organization", "SKA Plus", "SKA Modify", "Keys"}
        assert all(len(row) == len(MEMBERSHIP_HEADER) for row in rows)

    def test_members_keys_and_empty_groups(self):
        document = DocumentModel(module_name="m")
        document.keys.child_name = "proto"
        document.organization.key_label = "ORG"
        document.organization.operations.use.boundaries = [
            Boundary(
                groups=[
                    Group(quorum=2, name="admins", member_cns=["A1", "B1"]),
                    Group(quorum=1, key_labels=["KEY-1"]),
                    Group(quorum=1),
                ]
            )
        ]

        rows = list(membership_rows(document, {"A1": "Alice"}))

        use_rows = [r for r in rows if r[1] == "Organization" and r[7] == "use"]
        assert [r[-2:] for r in use_rows] == [
            ["Member", "Alice (A1)"],
            ["Member", "B1"],
            ["Key", "KEY-1"],
            ["", "(empty group)"],
        ]
        assert use_rows[0][3] == "ORG"
        assert use_rows[0][10:13] == ["1", "admins", "2"]
        assert any(r[1] == "Keys (proto)" for r in rows)


class TestUserRow:
    def test_without_certificate(self):
        row = user_row(IdentityRecord(cn="B1", name="Bob"))

        assert row[:5] == ["B1", "Bob", "", "", "No"]
        assert row[5:] == [""] * 7
        assert len(row) == len(USER_HEADER)

    def test_with_certificate(self):
        row = user_row(IdentityRecord(cn="A1", certificate=_make_certificate()))

        assert row[4] == "Yes"
        assert row[5] == "CN=Alice A1"
        assert row[10] == "1A2B"


class TestGenerateReports:
    def test_writes_both_reports(self, tmp_path):
        entry = DocumentEntry.new(DocumentModel(module_name="m"))
        records = [IdentityRecord(cn="b1"), IdentityRecord(cn="A1"), IdentityRecord(cn="C1")]

        result = generate_reports([entry], records, tmp_path / "out")

        memberships = _read_csv(result.membership_file)
        users = _read_csv(result.users_file)
        assert memberships[0] == MEMBERSHIP_HEADER
        assert result.membership_rows == len(memberships) - 1 == 16
        assert users[0] == USER_HEADER
        assert [row[0] for row in users[1:]] == ["A1", "b1", "C1"]
        assert result.user_rows == 3
