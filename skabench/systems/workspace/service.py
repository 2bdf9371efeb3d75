"""
SKA Workbench — Workspace Service

File-level operations on a Workspace: open a folder or a single file,
start a new document, save one entry or every dirty entry.

Folder loading keeps going past individual parse failures and reports them
as a batch. Save-all isolates failures per entry: the others still save,
and a failed entry stays dirty.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from skabench.config import SkaBenchConfig
from skabench.primitives.common import Environment
from skabench.primitives.document import DocumentModel
from skabench.systems.codec import (
    CodecError,
    DocumentReader,
    DocumentWriter,
    XmlDocumentReader,
    XmlDocumentWriter,
    apply_load_environment,
)
from skabench.systems.workspace.errors import FolderLoadError, WorkspaceError
from skabench.systems.workspace.roster import sync_all_rosters, sync_entry_roster
from skabench.systems.workspace.synthesis import extend_pool, synthesize_pool
from skabench.systems.workspace.types import (
    DocumentEntry,
    LoadFailure,
    LoadReport,
    SaveFailure,
    SaveReport,
    VersionProposal,
    WorkspaceEventKind,
)
from skabench.systems.workspace.versioning import (
    apply_version_bumps,
    propose_version_bumps,
    versioned_filename,
)
from skabench.systems.workspace.workspace import Workspace

logger = structlog.get_logger("skabench.workspace.service")

NO_FILE_PATH = "no file path (use Save As)"

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def save_warnings(document: DocumentModel) -> list[str]:
    """Potential problems worth showing the operator before a save."""
    warnings: list[str] = []
    if not document.module_name:
        warnings.append("Module name is empty")

    missing_certs = sum(1 for u in document.users if not u.certificate)
    if missing_certs:
        warnings.append(f"{missing_certs} user(s) have no certificate")

    empty_groups = sum(
        1 for _, group in document.iter_groups() if group.is_empty and group.quorum > 0
    )
    if empty_groups:
        warnings.append(f"{empty_groups} group(s) have no members/keys")

    dangling = document.dangling_member_cns()
    if dangling:
        warnings.append(f"{len(dangling)} member CN(s) not in the user list: {', '.join(dangling)}")

    for scope, section in (
        ("organization", document.organization),
        ("skaplus", document.ska_plus),
        ("skamodify", document.ska_modify),
    ):
        for label, value in (("start", section.start_validity), ("end", section.end_validity)):
            if value and not _ISO_DATE.match(value):
                warnings.append(f"{scope}: {label} validity {value!r} is not YYYY-MM-DD")
    return warnings


class WorkspaceService:
    """Loads documents into a Workspace and writes them back out."""

    def __init__(
        self,
        workspace: Workspace,
        config: SkaBenchConfig,
        reader: DocumentReader | None = None,
        writer: DocumentWriter | None = None,
    ) -> None:
        self._workspace = workspace
        self._config = config
        self._reader = reader or XmlDocumentReader()
        self._writer = writer or XmlDocumentWriter()
        self._logger = logger.bind(component="workspace_service")

    @property
    def workspace(self) -> Workspace:
        return self._workspace

    def _load_environment(self) -> Environment:
        default = self._config.workspace.load_environment or Environment.PRODUCTION
        return self._workspace.session.resolve_load_environment(default)

    def _read(self, path: Path, environment: Environment) -> DocumentModel:
        document = self._reader.read(path)
        apply_load_environment(document, environment)
        return document

    # ─── Loading ────────────────────────────────────────────────

    def list_documents(self, folder: Path) -> list[Path]:
        suffix = self._config.workspace.file_suffix.lower()
        return sorted(
            (p for p in folder.iterdir() if p.is_file() and p.name.lower().endswith(suffix)),
            key=lambda p: p.name,
        )

    def open_folder(self, folder: Path) -> LoadReport:
        """
        Replace the workspace with every document in ``folder``.

        A folder without documents leaves the workspace untouched. When no
        file parses, the workspace is reset to one new empty document and
        FolderLoadError is raised.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise WorkspaceError(f"Not a folder: {folder}")

        report = LoadReport(folder=folder)
        paths = self.list_documents(folder)
        if not paths:
            self._logger.info("folder_has_no_documents", folder=str(folder))
            return report

        environment = self._load_environment()
        entries: list[DocumentEntry] = []
        for path in paths:
            try:
                document = self._read(path, environment)
            except CodecError as exc:
                self._logger.warning("document_parse_failed", path=str(path), error=str(exc))
                report.failures.append(LoadFailure(path=path, error=str(exc)))
                continue
            entries.append(DocumentEntry.loaded(document, path))
            report.loaded.append(path)

        if not entries:
            self._workspace.reset_to_new()
            self._logger.error(
                "folder_load_failed",
                folder=str(folder),
                failures=len(report.failures),
            )
            raise FolderLoadError(
                f"None of the {len(paths)} file(s) in {folder} could be loaded",
                report,
            )

        self._workspace.replace_entries(entries)
        synthesis = synthesize_pool(self._workspace)
        report.pool_size = synthesis.pool_size

        self._logger.info(
            "folder_opened",
            folder=str(folder),
            loaded=len(report.loaded),
            failed=len(report.failures),
            pool_size=report.pool_size,
        )
        return report

    def open_file(self, path: Path) -> DocumentEntry:
        """Add one document to the workspace and fold its roster into the pool."""
        path = Path(path)
        document = self._read(path, self._load_environment())
        entry = DocumentEntry.loaded(document, path)
        self._workspace.add_entry(entry)
        extend_pool(self._workspace, entry)
        self._logger.info("document_opened", path=str(path), module=document.module_name)
        return entry

    def new_document(self, module_name: str = "") -> DocumentEntry:
        environment = self._workspace.session.load_environment or Environment.PRODUCTION
        entry = DocumentEntry.new(DocumentModel(module_name=module_name, environment=environment))
        self._workspace.add_entry(entry)
        return entry

    # ─── Saving ─────────────────────────────────────────────────

    def _target_path(self, entry: DocumentEntry, path: Path, env: str, previous: str) -> Path:
        if not self._config.save.version_in_filename:
            return path
        return versioned_filename(
            path,
            entry.document.version,
            env,
            previous,
            default_suffix=self._config.workspace.file_suffix,
        )

    def _environment_names(self, environment_name: str | None) -> tuple[str, str]:
        env = self._config.save.environment_name if environment_name is None else environment_name
        return env.strip(), self._workspace.session.environment_name

    def save_entry(
        self,
        entry: DocumentEntry,
        path: Path | None = None,
        *,
        environment_name: str | None = None,
    ) -> Path:
        """Save one entry to ``path`` (Save As) or to its current source."""
        target = Path(path) if path is not None else entry.source
        if target is None:
            raise WorkspaceError(f"{entry.display_label}: {NO_FILE_PATH}")

        env, previous = self._environment_names(environment_name)
        with self._workspace.exclusive("save_entry", WorkspaceEventKind.SAVED):
            sync_entry_roster(self._workspace, entry)
            target = self._target_path(entry, target, env, previous)
            self._writer.write(entry.document, target)
            entry.mark_saved(target)
            self._workspace.session.environment_name = env

        self._logger.info("document_saved", path=str(target), version=entry.document.version)
        return target

    def propose_version_bumps(self) -> list[VersionProposal]:
        return propose_version_bumps(self._workspace.entries)

    def save_all(
        self,
        *,
        accept_bumps: bool | None = None,
        environment_name: str | None = None,
    ) -> SaveReport:
        """
        Save every dirty entry. Rosters of all entries are regenerated from
        the pool first. Version bumps are applied only when accepted.
        """
        report = SaveReport()
        if self._workspace.is_empty:
            return report

        if accept_bumps is None:
            accept_bumps = self._config.save.auto_bump_versions

        env, previous = self._environment_names(environment_name)
        entries = self._workspace.entries

        with self._workspace.exclusive("save_all", WorkspaceEventKind.SAVED):
            sync_all_rosters(self._workspace)

            if accept_bumps:
                bumped = apply_version_bumps(entries, propose_version_bumps(entries))
                if bumped:
                    self._logger.info("versions_bumped", count=bumped)

            for entry in entries:
                if not entry.dirty:
                    continue
                if entry.source is None:
                    report.failures.append(
                        SaveFailure(label=entry.display_label, error=NO_FILE_PATH)
                    )
                    continue
                target = self._target_path(entry, entry.source, env, previous)
                try:
                    self._writer.write(entry.document, target)
                except Exception as exc:
                    # One unwritable file must not stop the remaining saves.
                    self._logger.error(
                        "document_save_failed",
                        label=entry.display_label,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    report.failures.append(SaveFailure(label=entry.source.name, error=str(exc)))
                    continue
                entry.mark_saved(target)
                report.saved.append(target)

            self._workspace.session.environment_name = env

        self._logger.info(
            "workspace_saved",
            saved=len(report.saved),
            failed=len(report.failures),
        )
        return report
