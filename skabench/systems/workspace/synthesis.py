"""
SKA Workbench — Pool Synthesis

Builds the workspace's canonical identity pool from the rosters of every
open document. The first document a CN appears in supplies the base record;
later occurrences only fill gaps. Certificates follow the same fill-only
rule here, unlike the external importers, which overwrite them.

Synthesis is destructive: the previous pool is discarded. After it runs,
the pool's CN set equals the union of all roster CNs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

import structlog

from skabench.primitives.common import MergeRule
from skabench.primitives.identity import IdentityRecord
from skabench.systems.workspace.merge import merge_identity
from skabench.systems.workspace.types import (
    DocumentEntry,
    SynthesisReport,
    WorkspaceEventKind,
)

if TYPE_CHECKING:
    from skabench.systems.workspace.workspace import Workspace

logger = structlog.get_logger("skabench.workspace.synthesis")


def build_pool(
    entries: Iterable[DocumentEntry],
) -> tuple[list[IdentityRecord], SynthesisReport]:
    """Merge all rosters into a list of canonical records in first-seen order."""
    by_cn: dict[str, IdentityRecord] = {}
    merged = 0
    skipped_blank = 0

    for entry in entries:
        for user in entry.document.users:
            if not user.cn:
                skipped_blank += 1
                continue
            existing = by_cn.get(user.cn)
            if existing is None:
                by_cn[user.cn] = user.copy_record()
            else:
                merge_identity(existing, user, certificate=MergeRule.FILL_ONLY)
                merged += 1

    report = SynthesisReport(
        pool_size=len(by_cn),
        merged=merged,
        skipped_blank=skipped_blank,
    )
    return list(by_cn.values()), report


def extend_pool(workspace: Workspace, entry: DocumentEntry) -> SynthesisReport:
    """
    Fold one more entry's roster into the existing pool without rebuilding it.

    Used when a single file joins an open workspace; identities that only
    exist in the pool (added by an import, say) are kept.
    """
    merged = 0
    skipped_blank = 0
    with workspace.exclusive("extend_pool", WorkspaceEventKind.POOL_CHANGED):
        for user in entry.document.users:
            if not user.cn:
                skipped_blank += 1
                continue
            existing = workspace.pool.get(user.cn)
            if existing is None:
                workspace.pool.add(user.copy_record())
            else:
                merge_identity(existing, user, certificate=MergeRule.FILL_ONLY)
                merged += 1

    return SynthesisReport(
        pool_size=len(workspace.pool),
        merged=merged,
        skipped_blank=skipped_blank,
    )


def synthesize_pool(workspace: Workspace) -> SynthesisReport:
    """Discard the workspace pool and rebuild it from every entry's roster."""
    with workspace.exclusive("synthesize_pool", WorkspaceEventKind.POOL_CHANGED):
        records, report = build_pool(workspace.entries)
        workspace.pool.replace_all(records)

    logger.info(
        "pool_synthesized",
        entries=len(workspace),
        pool_size=report.pool_size,
        merged=report.merged,
        skipped_blank=report.skipped_blank,
    )
    return report
