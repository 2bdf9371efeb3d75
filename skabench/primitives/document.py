"""
SKA Workbench — Document Model

In-memory model of one SKA configuration document:

  DocumentModel
    ├── organization / skaplus / skamodify   (Section)
    │     └── operations: use, modify, block, unblock   (Operation)
    │           └── boundaries                            (Boundary)
    │                 └── groups                          (Group)
    ├── keys/<child_name>                      (KeysBlock, same Operations shape)
    └── users                                  (roster of IdentityRecord copies)

A Group references people by CN only. Nothing here checks that a referenced
CN is in the roster: dangling references are representable and tolerated.
Quorum semantics are evaluated by the HSM that consumes these documents.
"""

from __future__ import annotations

from typing import Iterator

from pydantic import Field

from skabench.primitives.common import (
    Environment,
    OperationKind,
    SectionKind,
    SkaBaseModel,
)
from skabench.primitives.identity import IdentityRecord

# Label used for the keys block in locations and reports.
KEYS_SCOPE = "keys"


class EcParameters(SkaBaseModel):
    """Elliptic-curve parameters: optional curve name plus the raw PEM block."""

    curve_name: str = ""    # e.g. "brainpoolP256r1"
    pem_text: str = ""      # -----BEGIN EC PARAMETERS----- ... -----END EC PARAMETERS-----


class Group(SkaBaseModel):
    """Members (people) or keys that must satisfy a quorum."""

    quorum: int = Field(default=1, ge=0)
    name: str = ""
    member_cns: list[str] = Field(default_factory=list)
    key_labels: list[str] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.member_cns and not self.key_labels


class Boundary(SkaBaseModel):
    """A set of groups that must each meet their quorum."""

    groups: list[Group] = Field(default_factory=list)


class Operation(SkaBaseModel):
    """Timing attributes plus the boundaries that segregate duties."""

    delay_millis: int = 0
    time_limit_millis: int = 0
    boundaries: list[Boundary] = Field(default_factory=list)


class Operations(SkaBaseModel):
    """Container for the four operation types."""

    use: Operation = Field(default_factory=Operation)
    modify: Operation = Field(default_factory=Operation)
    block: Operation = Field(default_factory=Operation)
    unblock: Operation = Field(default_factory=Operation)

    def get(self, kind: OperationKind) -> Operation:
        return getattr(self, kind.value)

    def items(self) -> Iterator[tuple[OperationKind, Operation]]:
        for kind in OperationKind:
            yield kind, self.get(kind)


class Section(SkaBaseModel):
    """Shared shape of the organization, skaplus and skamodify sections."""

    blocked_on_initialize: bool = False
    key_label: str = ""
    start_validity: str = ""   # YYYY-MM-DD
    end_validity: str = ""     # YYYY-MM-DD
    ec_parameters: EcParameters = Field(default_factory=EcParameters)
    operations: Operations = Field(default_factory=Operations)


class Personalization(SkaBaseModel):
    """The optional ``<personalization>`` element inside the keys block."""

    enabled: bool = False
    use_kek: bool = True
    kek_label: str = ""
    ec_parameters: EcParameters = Field(default_factory=EcParameters)


class KeysBlock(SkaBaseModel):
    """
    The ``<keys><child_name>`` block. Same operations shape as a section but
    no key label or validity window. The child element name is dynamic
    (e.g. "proto"); an empty name means the block is absent.
    """

    child_name: str = ""
    operations: Operations = Field(default_factory=Operations)
    ec_parameters: EcParameters = Field(default_factory=EcParameters)
    personalization: Personalization = Field(default_factory=Personalization)


class GroupLocation(SkaBaseModel):
    """Address of one group inside a document."""

    scope: str                  # SectionKind value or KEYS_SCOPE
    operation: OperationKind
    boundary_index: int
    group_index: int
    group_name: str = ""

    def describe(self, keys_child_name: str = "") -> str:
        scope = self.scope
        if scope == KEYS_SCOPE and keys_child_name:
            scope = f"keys({keys_child_name})"
        group = f'"{self.group_name}"' if self.group_name else str(self.group_index + 1)
        return (
            f"{scope} > {self.operation.value} > boundary {self.boundary_index + 1}"
            f" > group {group}"
        )


class DocumentModel(SkaBaseModel):
    """Root model representing an entire SKA configuration file."""

    module_name: str = ""
    version: int = 1
    organization: Section = Field(default_factory=Section)
    ska_plus: Section = Field(default_factory=Section)
    ska_modify: Section = Field(default_factory=Section)
    keys: KeysBlock = Field(default_factory=KeysBlock)
    users: list[IdentityRecord] = Field(default_factory=list)

    environment: Environment = Environment.PRODUCTION
    schema_location: str = ""

    # -- Structure traversal --

    def section(self, kind: SectionKind) -> Section:
        return {
            SectionKind.ORGANIZATION: self.organization,
            SectionKind.SKA_PLUS: self.ska_plus,
            SectionKind.SKA_MODIFY: self.ska_modify,
        }[kind]

    def operation_scopes(self) -> Iterator[tuple[str, Operations]]:
        """Every Operations container: the three sections, then the keys block."""
        for kind in SectionKind:
            yield kind.value, self.section(kind).operations
        yield KEYS_SCOPE, self.keys.operations

    def iter_groups(self) -> Iterator[tuple[GroupLocation, Group]]:
        for scope, operations in self.operation_scopes():
            for op_kind, operation in operations.items():
                for bi, boundary in enumerate(operation.boundaries):
                    for gi, group in enumerate(boundary.groups):
                        location = GroupLocation(
                            scope=scope,
                            operation=op_kind,
                            boundary_index=bi,
                            group_index=gi,
                            group_name=group.name,
                        )
                        yield location, group

    def group_at(self, location: GroupLocation) -> Group | None:
        """Resolve a location; None when the structure no longer has that slot."""
        if location.scope == KEYS_SCOPE:
            operations = self.keys.operations
        else:
            operations = self.section(SectionKind(location.scope)).operations
        boundaries = operations.get(location.operation).boundaries
        if not 0 <= location.boundary_index < len(boundaries):
            return None
        groups = boundaries[location.boundary_index].groups
        if not 0 <= location.group_index < len(groups):
            return None
        return groups[location.group_index]

    # -- Roster queries --

    def roster_cns(self) -> list[str]:
        return [u.cn for u in self.users if u.cn]

    def find_user(self, cn: str) -> IdentityRecord | None:
        for user in self.users:
            if user.cn == cn:
                return user
        return None

    def has_user(self, cn: str) -> bool:
        return self.find_user(cn) is not None

    def referenced_member_cns(self) -> list[str]:
        """All member CNs referenced by any group, first-seen order."""
        seen: dict[str, None] = {}
        for _, group in self.iter_groups():
            for cn in group.member_cns:
                seen.setdefault(cn, None)
        return list(seen)

    def dangling_member_cns(self) -> list[str]:
        """Member CNs referenced by groups but absent from the roster."""
        roster = set(self.roster_cns())
        return [cn for cn in self.referenced_member_cns() if cn not in roster]
