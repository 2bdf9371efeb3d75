"""
SKA Workbench — Document Codec

The workspace only depends on the two protocols below; the XML classes are
the shipped implementation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from skabench.primitives.document import DocumentModel
from skabench.systems.codec.errors import CodecError, DocumentParseError, DocumentWriteError
from skabench.systems.codec.reader import XmlDocumentReader, apply_load_environment
from skabench.systems.codec.writer import XmlDocumentWriter


class DocumentReader(Protocol):
    def read(self, path: Path) -> DocumentModel: ...


class DocumentWriter(Protocol):
    def write(self, document: DocumentModel, path: Path) -> None: ...


__all__ = [
    "CodecError",
    "DocumentParseError",
    "DocumentReader",
    "DocumentWriteError",
    "DocumentWriter",
    "XmlDocumentReader",
    "XmlDocumentWriter",
    "apply_load_environment",
]
