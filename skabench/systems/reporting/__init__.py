"""
SKA Workbench — Reporting System
"""

from skabench.systems.reporting.certificates import CertificateInfo, inspect_certificate
from skabench.systems.reporting.generator import (
    MEMBERSHIP_HEADER,
    USER_HEADER,
    ReportResult,
    generate_reports,
    membership_rows,
    user_row,
)

__all__ = [
    "MEMBERSHIP_HEADER",
    "USER_HEADER",
    "CertificateInfo",
    "ReportResult",
    "generate_reports",
    "inspect_certificate",
    "membership_rows",
    "user_row",
]
