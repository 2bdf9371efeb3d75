"""
SKA Workbench — Common Primitives

Shared enums, base classes, and utilities used across all systems.
"""

from __future__ import annotations

import enum
from typing import Iterable

from pydantic import BaseModel
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, globally unique."""
    return str(ULID())


def ordered_union(*groups: Iterable[str]) -> list[str]:
    """Union of string collections, keeping first-seen order and dropping blanks."""
    seen: dict[str, None] = {}
    for group in groups:
        for value in group:
            if value and value not in seen:
                seen[value] = None
    return list(seen)


# ─── Enums ────────────────────────────────────────────────────────


class Environment(enum.StrEnum):
    """Which user-ID namespace a document's ``userId`` attribute belongs to."""

    PRODUCTION = "production"
    INTEGRATION = "integration"


class MergeRule(enum.StrEnum):
    """How an incoming non-empty value treats the target's current value."""

    FILL_ONLY = "fill_only"  # Only fill blanks, never overwrite
    OVERWRITE = "overwrite"  # Incoming non-empty always wins


class RoleKind(enum.StrEnum):
    """The three organisation role sets an identity can hold."""

    OWNER = "org_owner_of"
    SECURITY_OFFICER = "org_sec_off_of"
    OPERATOR = "org_op_of"


class OperationKind(enum.StrEnum):
    USE = "use"
    MODIFY = "modify"
    BLOCK = "block"
    UNBLOCK = "unblock"


class SectionKind(enum.StrEnum):
    ORGANIZATION = "organization"
    SKA_PLUS = "skaplus"
    SKA_MODIFY = "skamodify"


# ─── Base Models ──────────────────────────────────────────────────


class SkaBaseModel(BaseModel):
    """Base model for all SKA primitives."""

    model_config = {"populate_by_name": True, "from_attributes": True}
