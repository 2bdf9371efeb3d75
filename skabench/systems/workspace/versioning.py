"""
SKA Workbench — Version Proposals & Versioned Filenames

A document's version is expected to increase with every saved change. The
workbench never enforces this; it proposes bumps for dirty entries whose
version has not moved since load and lets the operator decide.

Saved files carry the version (and optionally an environment name) in the
filename: ``ska.xml`` saved as version 3 for "Prod" becomes
``ska_Prod_v3.xml``.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence

from skabench.systems.workspace.types import DocumentEntry, VersionProposal

_VERSION_SUFFIX = re.compile(r"_v\d+$")


def propose_version_bumps(entries: Sequence[DocumentEntry]) -> list[VersionProposal]:
    """One proposal per dirty entry, indexed by its position in ``entries``."""
    return [
        VersionProposal(
            entry_index=i,
            label=entry.display_label,
            loaded_version=entry.loaded_version,
            current_version=entry.document.version,
        )
        for i, entry in enumerate(entries)
        if entry.dirty
    ]


def apply_version_bumps(
    entries: Sequence[DocumentEntry],
    proposals: Sequence[VersionProposal],
) -> int:
    """Apply accepted proposals; returns the number of versions changed."""
    applied = 0
    for proposal in proposals:
        if not proposal.needs_bump:
            continue
        entries[proposal.entry_index].document.version = proposal.proposed_version
        applied += 1
    return applied


def versioned_filename(
    path: Path,
    version: int,
    environment_name: str = "",
    previous_environment_name: str = "",
    default_suffix: str = ".xml",
) -> Path:
    """
    Rewrite ``path``'s file name to ``<base>[_<env>]_v<version><ext>``.

    An existing ``_v<digits>`` suffix and the previous environment name are
    stripped first, so repeated saves never stack suffixes. A name without
    an extension gets ``default_suffix``. The directory is kept.
    """
    name = path.name
    dot = name.rfind(".")
    if dot > 0:
        base, ext = name[:dot], name[dot:]
    else:
        base, ext = name, default_suffix

    base = _VERSION_SUFFIX.sub("", base)

    if previous_environment_name:
        suffix = f"_{previous_environment_name}"
        if base.endswith(suffix):
            base = base[: -len(suffix)]

    if environment_name:
        base = f"{base}_{environment_name}"

    return path.with_name(f"{base}_v{version}{ext}")
