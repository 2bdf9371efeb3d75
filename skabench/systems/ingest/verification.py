"""
SKA Workbench — User-ID Verification

Compares the user IDs loaded from documents with a reference export.
Only values present on both sides are compared; a blank on either side is
not a mismatch.
"""

from __future__ import annotations

from typing import Iterable

from pydantic import Field

from skabench.primitives.common import Environment, SkaBaseModel
from skabench.primitives.identity import IdentityRecord


class UserIdMismatch(SkaBaseModel):
    cn: str
    environment: Environment
    document_value: str
    reference_value: str


class VerificationReport(SkaBaseModel):
    checked: int = 0
    mismatches: list[UserIdMismatch] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)   # labels of records absent from the reference

    @property
    def ok(self) -> bool:
        return not self.mismatches and not self.missing

    def describe(self) -> str:
        if self.ok:
            return "All user IDs match the CSV. No inconsistencies found."
        lines: list[str] = []
        if self.mismatches:
            lines.append(f"{len(self.mismatches)} UserID mismatch(es) found:")
            for m in self.mismatches:
                env = "Prod" if m.environment is Environment.PRODUCTION else "Int"
                lines.append(f"  * {m.cn}")
                lines.append(
                    f'    {env} UserID: SKA="{m.document_value}" CSV="{m.reference_value}"'
                )
            lines.append("")
        if self.missing:
            lines.append(f"{len(self.missing)} SKA user(s) not found in CSV:")
            lines.extend(f"  * {label}" for label in self.missing)
        return "\n".join(lines).rstrip()


def verify_user_ids(
    loaded: Iterable[IdentityRecord],
    reference: Iterable[IdentityRecord],
) -> VerificationReport:
    by_cn = {r.cn: r for r in reference if r.cn}
    report = VerificationReport()

    for record in loaded:
        report.checked += 1
        ref = by_cn.get(record.cn)
        if ref is None:
            label = f"{record.cn} ({record.name})" if record.name else record.cn
            report.missing.append(label)
            continue
        for environment in Environment:
            ours = record.user_id_for(environment)
            theirs = ref.user_id_for(environment)
            if ours and theirs and ours != theirs:
                report.mismatches.append(
                    UserIdMismatch(
                        cn=record.cn,
                        environment=environment,
                        document_value=ours,
                        reference_value=theirs,
                    )
                )
    return report
