"""
SKA Workbench — Primitives

Data types shared by every system: identity records, the document tree and
the common enums.
"""

from skabench.primitives.common import (
    Environment,
    MergeRule,
    OperationKind,
    RoleKind,
    SectionKind,
    SkaBaseModel,
    new_id,
    ordered_union,
)
from skabench.primitives.document import (
    KEYS_SCOPE,
    Boundary,
    DocumentModel,
    EcParameters,
    Group,
    GroupLocation,
    KeysBlock,
    Operation,
    Operations,
    Personalization,
    Section,
)
from skabench.primitives.identity import SCALAR_FIELDS, IdentityRecord

__all__ = [
    "KEYS_SCOPE",
    "SCALAR_FIELDS",
    "Boundary",
    "DocumentModel",
    "EcParameters",
    "Environment",
    "Group",
    "GroupLocation",
    "IdentityRecord",
    "KeysBlock",
    "MergeRule",
    "Operation",
    "OperationKind",
    "Operations",
    "Personalization",
    "RoleKind",
    "Section",
    "SectionKind",
    "SkaBaseModel",
    "new_id",
    "ordered_union",
]
