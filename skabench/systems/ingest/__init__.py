"""
SKA Workbench — Ingest System

Tabular import of identity exports, folding them into the workspace, and
user-ID verification against them.
"""

from skabench.systems.ingest.csv_importer import (
    CsvImporter,
    clean_certificate,
    find_certificate_in_row,
    split_multi_value,
)
from skabench.systems.ingest.errors import TabularImportError
from skabench.systems.ingest.merge import ExternalMergeImporter, ImportResult
from skabench.systems.ingest.verification import (
    UserIdMismatch,
    VerificationReport,
    verify_user_ids,
)

__all__ = [
    "CsvImporter",
    "ExternalMergeImporter",
    "ImportResult",
    "TabularImportError",
    "UserIdMismatch",
    "VerificationReport",
    "clean_certificate",
    "find_certificate_in_row",
    "split_multi_value",
    "verify_user_ids",
]
