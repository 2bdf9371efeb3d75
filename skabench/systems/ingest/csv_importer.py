"""
SKA Workbench — CSV Asset Export Importer

Reads the asset-management CSV export into de-duplicated IdentityRecords.

The export is messy in known ways:
  - certificate cells carry ``&nbsp;`` entities, non-breaking spaces and
    CRLF line endings around the PEM block
  - a certificate sometimes lands in the wrong column
  - the same CN can appear on several rows

Rows without a CN are skipped. Duplicate CNs are merged: blanks are filled
from later rows, roles are unioned and the last non-empty certificate wins.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path

import structlog

from skabench.config import ImportColumns
from skabench.primitives.common import MergeRule
from skabench.primitives.identity import IdentityRecord
from skabench.systems.ingest.errors import TabularImportError
from skabench.systems.workspace.merge import merge_identity

logger = structlog.get_logger("skabench.ingest.csv")

PEM_BEGIN = "-----BEGIN CERTIFICATE-----"
PEM_END = "-----END CERTIFICATE-----"


def clean_certificate(raw: str | None) -> str:
    """
    Extract the PEM certificate block from a raw cell.

    Returns an empty string when the cell holds no complete block.
    """
    if not raw:
        return ""
    cleaned = (
        raw.replace("&nbsp;", "")
        .replace("\u00a0", "")
        .replace("\r\n", "\n")
        .replace("\r", "\n")
        .strip()
    )
    start = cleaned.find(PEM_BEGIN)
    end = cleaned.find(PEM_END)
    if start < 0 or end < 0 or end < start:
        return ""
    return cleaned[start : end + len(PEM_END)].strip()


def find_certificate_in_row(row: list[str]) -> str:
    """First cell of the row that yields a certificate, or ""."""
    for cell in row:
        if cell and PEM_BEGIN in cell:
            cert = clean_certificate(cell)
            if cert:
                return cert
    return ""


def split_multi_value(raw: str | None, separator: str = "||") -> list[str]:
    if not raw or not raw.strip():
        return []
    values: list[str] = []
    for part in raw.split(separator):
        value = part.strip()
        if value and value not in values:
            values.append(value)
    return values


class CsvImporter:
    """Turns a CSV asset export into a list of unique IdentityRecords."""

    def __init__(
        self,
        columns: ImportColumns | None = None,
        role_separator: str = "||",
        encoding: str = "utf-8-sig",
    ) -> None:
        self._columns = columns or ImportColumns()
        self._separator = role_separator
        self._encoding = encoding
        self._logger = logger.bind(component="csv_importer")

    def import_file(self, path: Path) -> list[IdentityRecord]:
        path = Path(path)
        try:
            text = path.read_text(encoding=self._encoding)
        except (OSError, UnicodeDecodeError) as exc:
            self._logger.error("csv_read_failed", path=str(path), error=str(exc))
            raise TabularImportError(f"Cannot read {path}: {exc}") from exc

        records = self.import_text(text, source=str(path))
        self._logger.info("csv_imported", path=str(path), records=len(records))
        return records

    def import_text(self, text: str, source: str = "<string>") -> list[IdentityRecord]:
        # Strip a BOM that survived decoding with a non-sig codec.
        reader = csv.reader(io.StringIO(text.lstrip("\ufeff"), newline=""))
        try:
            header = next(reader, None)
            if header is None:
                raise TabularImportError(f"CSV file is empty: {source}")
            columns = {name.strip(): i for i, name in enumerate(header)}
            rows = list(reader)
        except csv.Error as exc:
            self._logger.error("csv_parse_failed", source=source, error=str(exc))
            raise TabularImportError(f"Failed to parse CSV {source}: {exc}") from exc

        by_cn: dict[str, IdentityRecord] = {}
        skipped = 0
        for row in rows:
            record = self._record_from_row(row, columns)
            if record is None:
                skipped += 1
                continue
            existing = by_cn.get(record.cn)
            if existing is None:
                by_cn[record.cn] = record
            else:
                merge_identity(existing, record, certificate=MergeRule.OVERWRITE)

        self._logger.debug(
            "csv_rows_processed",
            source=source,
            rows=len(rows),
            unique=len(by_cn),
            skipped=skipped,
        )
        return list(by_cn.values())

    def _record_from_row(self, row: list[str], columns: dict[str, int]) -> IdentityRecord | None:
        def field(header: str) -> str:
            index = columns.get(header)
            if index is None or index >= len(row):
                return ""
            return row[index]

        cols = self._columns
        cn = field(cols.cn).strip()
        if not cn:
            return None

        certificate = clean_certificate(field(cols.certificate)) or find_certificate_in_row(row)
        return IdentityRecord(
            cn=cn,
            name=field(cols.name).strip(),
            email=field(cols.email).strip(),
            organisation=field(cols.organisation).strip(),
            user_id=field(cols.user_id).strip(),
            user_id_integration=field(cols.user_id_integration).strip(),
            certificate=certificate,
            org_owner_of=split_multi_value(field(cols.org_owner), self._separator),
            org_sec_off_of=split_multi_value(field(cols.org_sec_off), self._separator),
            org_op_of=split_multi_value(field(cols.org_op), self._separator),
        )
