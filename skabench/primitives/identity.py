"""
SKA Workbench — Identity Record

One person eligible to act on SKA operations. Records are keyed by their
common name (CN); the same CN appearing in several documents refers to the
same person.

Documents embed *copies* of records, never references. The workspace pool
holds the canonical record for each CN.
"""

from __future__ import annotations

from pydantic import Field, field_validator

from skabench.primitives.common import (
    Environment,
    RoleKind,
    SkaBaseModel,
    ordered_union,
)

# Scalar attributes that take part in record merging, in display order.
SCALAR_FIELDS: tuple[str, ...] = (
    "name",
    "email",
    "organisation",
    "user_id",
    "user_id_integration",
)


class IdentityRecord(SkaBaseModel):
    """A user (person) in an SKA configuration or in the workspace pool."""

    cn: str = ""                    # e.g. "Baesler Boris KJBDG0"
    name: str = ""                  # e.g. "Baesler Boris"
    email: str = ""
    organisation: str = ""
    user_id: str = ""               # Production environment identifier
    user_id_integration: str = ""   # Integration environment identifier
    certificate: str = ""           # PEM-encoded X.509 certificate

    # Role assignments; values are organisation identifiers like "CVCA PP (Prod)".
    org_owner_of: list[str] = Field(default_factory=list)
    org_sec_off_of: list[str] = Field(default_factory=list)
    org_op_of: list[str] = Field(default_factory=list)

    @field_validator("org_owner_of", "org_sec_off_of", "org_op_of", mode="before")
    @classmethod
    def _dedupe_roles(cls, value: object) -> object:
        if isinstance(value, (list, tuple, set, frozenset)):
            return ordered_union(str(v).strip() for v in value)
        return value

    @field_validator(*SCALAR_FIELDS, "cn", "certificate", mode="before")
    @classmethod
    def _none_to_blank(cls, value: object) -> object:
        return "" if value is None else value

    # -- Roles --

    def roles(self, kind: RoleKind) -> list[str]:
        return getattr(self, kind.value)

    def grant_roles(self, kind: RoleKind, values: list[str]) -> list[str]:
        """Add role values, returning only the ones that were not already held."""
        current = self.roles(kind)
        added = [v for v in ordered_union(values) if v not in current]
        setattr(self, kind.value, current + added)
        return added

    def clear_roles(self) -> None:
        for kind in RoleKind:
            setattr(self, kind.value, [])

    @property
    def has_roles(self) -> bool:
        return any(self.roles(kind) for kind in RoleKind)

    # -- Display --

    @property
    def label(self) -> str:
        """``CN  (Name)`` when a name is known, else just the CN."""
        if self.name:
            return f"{self.cn}  ({self.name})"
        return self.cn

    def user_id_for(self, environment: Environment) -> str:
        if environment is Environment.INTEGRATION:
            return self.user_id_integration
        return self.user_id

    def copy_record(self) -> IdentityRecord:
        """Deep copy, so pool and rosters never share mutable role lists."""
        return self.model_copy(deep=True)

    def __str__(self) -> str:
        return self.cn or self.name
