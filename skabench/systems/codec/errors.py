"""
SKA Workbench — Codec Errors
"""

from __future__ import annotations

from pathlib import Path


class CodecError(RuntimeError):
    """Base for document read/write failures."""


class DocumentParseError(CodecError):
    """A file could not be parsed into a DocumentModel."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Cannot parse {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class DocumentWriteError(CodecError):
    """A DocumentModel could not be written to disk."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = Path(path)
        self.reason = reason
