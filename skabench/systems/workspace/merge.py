"""
SKA Workbench — Identity Merge Policy

One merge operation for two records that share a CN. Every call site picks
its certificate rule explicitly; the rules intentionally differ:

  pool synthesis          certificate=FILL_ONLY   (first document wins)
  CSV batch de-duplication certificate=OVERWRITE  (last row wins)
  external fold into pool  certificate=OVERWRITE, scalars=OVERWRITE

Role sets are always unioned, never shrunk.
"""

from __future__ import annotations

from skabench.primitives.common import MergeRule, RoleKind
from skabench.primitives.identity import SCALAR_FIELDS, IdentityRecord


def _apply(target: IdentityRecord, field: str, incoming: str, rule: MergeRule) -> bool:
    if not incoming:
        return False
    current = getattr(target, field)
    if rule is MergeRule.FILL_ONLY and current:
        return False
    if current == incoming:
        return False
    setattr(target, field, incoming)
    return True


def merge_identity(
    target: IdentityRecord,
    incoming: IdentityRecord,
    *,
    certificate: MergeRule,
    scalars: MergeRule = MergeRule.FILL_ONLY,
) -> list[str]:
    """
    Fold ``incoming`` into ``target`` in place.

    Returns the names of the attributes that changed. Empty incoming values
    never erase anything under either rule.
    """
    if target.cn != incoming.cn:
        raise ValueError(
            f"Cannot merge records with different CNs: {target.cn!r} != {incoming.cn!r}"
        )

    changed: list[str] = []
    for field in SCALAR_FIELDS:
        if _apply(target, field, getattr(incoming, field), scalars):
            changed.append(field)

    if _apply(target, "certificate", incoming.certificate, certificate):
        changed.append("certificate")

    for kind in RoleKind:
        if target.grant_roles(kind, incoming.roles(kind)):
            changed.append(kind.value)

    return changed
