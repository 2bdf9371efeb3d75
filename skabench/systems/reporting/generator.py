"""
SKA Workbench — Report Generator

Writes two CSV reports for a set of documents:

  memberships  one row per member, key, empty group, or operation without
               boundaries, across every section and the keys block
  users        one row per identity with the parsed certificate details,
               sorted case-insensitively by CN
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, Iterator, Sequence

import structlog

from skabench.primitives.common import OperationKind, SectionKind, SkaBaseModel
from skabench.primitives.document import DocumentModel, Operations
from skabench.primitives.identity import IdentityRecord
from skabench.systems.reporting.certificates import inspect_certificate
from skabench.systems.workspace.types import DocumentEntry

logger = structlog.get_logger("skabench.reporting")

MEMBERSHIP_HEADER = [
    "SKA Module", "Section", "EC Curve", "Key Label",
    "Start Validity", "End Validity", "Blocked On Init",
    "Operation", "Delay (ms)", "Time Limit (ms)",
    "Boundary #", "Group Name", "Quorum",
    "Type", "Member/Key",
]

USER_HEADER = [
    "CN", "Name", "Email", "Organisation",
    "Has Certificate",
    "Subject", "Issuer",
    "Not Before", "Not After",
    "Key Usage", "Serial Number", "SHA-256 Fingerprint",
]

_SECTION_LABELS: dict[SectionKind, str] = {
    SectionKind.ORGANIZATION: "Organization",
    SectionKind.SKA_PLUS: "SKA Plus",
    SectionKind.SKA_MODIFY: "SKA Modify",
}


class ReportResult(SkaBaseModel):
    membership_file: Path
    users_file: Path
    membership_rows: int = 0
    user_rows: int = 0


# ─── Membership rows ─────────────────────────────────────────────


def _member_display(cn: str, names: dict[str, str]) -> str:
    name = names.get(cn, "")
    if not name or name == cn:
        return cn
    return f"{name} ({cn})"


def _operation_rows(
    prefix: list[str],
    operations: Operations,
    names: dict[str, str],
) -> Iterator[list[str]]:
    for kind in OperationKind:
        operation = operations.get(kind)
        op_cols = [kind.value, str(operation.delay_millis), str(operation.time_limit_millis)]

        if not operation.boundaries:
            yield prefix + op_cols + ["", "", "", "", "(no boundaries)"]
            continue

        for bi, boundary in enumerate(operation.boundaries):
            for group in boundary.groups:
                group_cols = [str(bi + 1), group.name, str(group.quorum)]
                for cn in group.member_cns:
                    yield prefix + op_cols + group_cols + ["Member", _member_display(cn, names)]
                for label in group.key_labels:
                    yield prefix + op_cols + group_cols + ["Key", label]
                if group.is_empty:
                    yield prefix + op_cols + group_cols + ["", "(empty group)"]


def membership_rows(document: DocumentModel, names: dict[str, str]) -> Iterator[list[str]]:
    module = document.module_name
    for kind in SectionKind:
        section = document.section(kind)
        prefix = [
            module,
            _SECTION_LABELS[kind],
            section.ec_parameters.curve_name,
            section.key_label,
            section.start_validity,
            section.end_validity,
            "true" if section.blocked_on_initialize else "false",
        ]
        yield from _operation_rows(prefix, section.operations, names)

    keys = document.keys
    label = f"Keys ({keys.child_name})" if keys.child_name.strip() else "Keys"
    prefix = [module, label, keys.ec_parameters.curve_name, "", "", "", ""]
    yield from _operation_rows(prefix, keys.operations, names)


# ─── User rows ───────────────────────────────────────────────────


def user_row(record: IdentityRecord) -> list[str]:
    has_cert = "Yes" if record.certificate.strip() else "No"
    base = [record.cn, record.name, record.email, record.organisation, has_cert]
    info = inspect_certificate(record.certificate)
    if info is None:
        return base + [""] * 7
    return base + [
        info.subject,
        info.issuer,
        info.not_before,
        info.not_after,
        info.key_usage,
        info.serial_number,
        info.sha256_fingerprint,
    ]


# ─── Entry point ─────────────────────────────────────────────────


def _write_csv(path: Path, header: list[str], rows: Iterable[list[str]]) -> int:
    count = 0
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for row in rows:
            writer.writerow(row)
            count += 1
    return count


def generate_reports(
    entries: Sequence[DocumentEntry],
    records: Sequence[IdentityRecord],
    output_dir: Path,
    membership_filename: str = "report_memberships.csv",
    users_filename: str = "report_users.csv",
) -> ReportResult:
    """Write both reports into ``output_dir`` (created when missing)."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    names = {r.cn: r.name for r in records if r.cn.strip()}
    membership_file = output_dir / membership_filename
    users_file = output_dir / users_filename

    membership_count = _write_csv(
        membership_file,
        MEMBERSHIP_HEADER,
        (row for entry in entries for row in membership_rows(entry.document, names)),
    )
    ordered = sorted(records, key=lambda r: r.cn.lower())
    user_count = _write_csv(users_file, USER_HEADER, (user_row(r) for r in ordered))

    logger.info(
        "reports_generated",
        output_dir=str(output_dir),
        membership_rows=membership_count,
        user_rows=user_count,
    )
    return ReportResult(
        membership_file=membership_file,
        users_file=users_file,
        membership_rows=membership_count,
        user_rows=user_count,
    )
