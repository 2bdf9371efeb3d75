"""
SKA Workbench — Command Line

Operator entry point. Every command opens a folder of SKA documents into a
fresh workspace, then drives the same workspace operations an editor would.

Usage:
    skabench summary FOLDER
    skabench replace FOLDER OUTGOING_CN REPLACEMENT_CN [--commit] [--bump-versions]
    skabench import-csv FOLDER EXPORT.csv [--include-in MODULE] [--save]
    skabench verify FOLDER EXPORT.csv
    skabench report FOLDER OUTPUT_DIR

Global options --config and --integration go before the command. Exit
code is 0 on success and 1 on any handled failure.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

import structlog

from skabench.config import SkaBenchConfig, load_config
from skabench.primitives.common import Environment
from skabench.systems.codec import CodecError
from skabench.systems.ingest import (
    CsvImporter,
    ExternalMergeImporter,
    TabularImportError,
    verify_user_ids,
)
from skabench.systems.replacement import ReplacementEngine, ReplacementError
from skabench.systems.reporting import generate_reports
from skabench.systems.workspace import (
    SaveReport,
    Workspace,
    WorkspaceError,
    WorkspaceService,
    save_warnings,
)
from skabench.telemetry import setup_logging

logger = structlog.get_logger("skabench.main")


# ── Argument parsing ──────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skabench",
        description="Keep identities consistent across a folder of SKA configuration files.",
    )
    parser.add_argument(
        "--config",
        metavar="YAML",
        default=None,
        help="Configuration file (defaults are used when omitted).",
    )
    parser.add_argument(
        "--integration",
        action="store_true",
        help="Documents carry integration user IDs instead of production ones.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    summary = commands.add_parser("summary", help="List documents, rosters and warnings.")
    summary.add_argument("folder", type=Path)

    replace = commands.add_parser("replace", help="Replace one person with another everywhere.")
    replace.add_argument("folder", type=Path)
    replace.add_argument("outgoing", metavar="OUTGOING_CN")
    replace.add_argument("replacement", metavar="REPLACEMENT_CN")
    replace.add_argument(
        "--commit",
        action="store_true",
        help="Apply the plan and save every changed document (default: preview only).",
    )
    replace.add_argument(
        "--bump-versions",
        action="store_true",
        help="Increase the version of every saved document that has not been bumped yet.",
    )
    replace.add_argument("--environment-name", default=None, help='Filename tag, e.g. "Prod".')

    import_csv = commands.add_parser("import-csv", help="Fold a CSV asset export into the pool.")
    import_csv.add_argument("folder", type=Path)
    import_csv.add_argument("csv", type=Path)
    import_csv.add_argument(
        "--include-in",
        metavar="MODULE",
        default=None,
        help="Add new users to the document with this module name.",
    )
    import_csv.add_argument("--save", action="store_true", help="Save changed documents.")
    import_csv.add_argument("--bump-versions", action="store_true")
    import_csv.add_argument("--environment-name", default=None)

    verify = commands.add_parser("verify", help="Compare loaded user IDs with a CSV export.")
    verify.add_argument("folder", type=Path)
    verify.add_argument("csv", type=Path)

    report = commands.add_parser("report", help="Write membership and user CSV reports.")
    report.add_argument("folder", type=Path)
    report.add_argument("output_dir", type=Path)

    return parser


# ── Commands ──────────────────────────────────────────────────────────────────


def _open(config: SkaBenchConfig, folder: Path) -> WorkspaceService:
    service = WorkspaceService(Workspace(), config)
    report = service.open_folder(folder)
    if report.is_empty:
        raise WorkspaceError(f"No {config.workspace.file_suffix} files in {folder}")
    for failure in report.failures:
        print(f"[!] {failure.path.name}: {failure.error}")
    print(
        f"[*] Loaded {len(report.loaded)} document(s) from {folder}, "
        f"{report.pool_size} unique user(s)"
    )
    return service


def _print_save_report(report: SaveReport) -> None:
    for path in report.saved:
        print(f"[*] Saved {path}")
    for failure in report.failures:
        print(f"[!] {failure.label}: {failure.error}")


def _cmd_summary(config: SkaBenchConfig, args: argparse.Namespace) -> int:
    service = _open(config, args.folder)
    workspace = service.workspace
    print()
    for entry in workspace.entries:
        document = entry.document
        print(f"  {entry.display_label}  v{document.version}  users={len(document.users)}")
        for warning in save_warnings(document):
            print(f"      - {warning}")
    print()
    print(f"  Pool: {len(workspace.pool)} user(s)")
    return 0


def _cmd_replace(config: SkaBenchConfig, args: argparse.Namespace) -> int:
    service = _open(config, args.folder)
    engine = ReplacementEngine(service.workspace)
    plan = engine.simulate(args.outgoing, args.replacement)
    print()
    print(plan.describe())
    print()

    if not args.commit or plan.is_empty:
        return 0

    result = engine.commit(plan)
    for warning in result.warnings:
        print(f"[!] {warning}")
    print(f"[*] Committed {result.applied} change(s) in {len(result.touched_entries)} document(s)")

    report = service.save_all(
        accept_bumps=args.bump_versions or None,
        environment_name=args.environment_name,
    )
    _print_save_report(report)
    return 0 if report.ok else 1


def _cmd_import_csv(config: SkaBenchConfig, args: argparse.Namespace) -> int:
    service = _open(config, args.folder)
    workspace = service.workspace

    include_in = None
    if args.include_in:
        include_in = workspace.find_by_module(args.include_in)
        if include_in is None:
            print(f"[!] No document with module name {args.include_in!r}")
            return 1

    importer = CsvImporter(
        config.ingest.columns,
        role_separator=config.ingest.role_separator,
        encoding=config.ingest.encoding,
    )
    records = importer.import_file(args.csv)
    result = ExternalMergeImporter(workspace).fold_into_pool(records, include_in=include_in)
    print()
    print(result.describe())
    print()

    if not args.save or not result.changed:
        return 0
    report = service.save_all(
        accept_bumps=args.bump_versions or None,
        environment_name=args.environment_name,
    )
    _print_save_report(report)
    return 0 if report.ok else 1


def _cmd_verify(config: SkaBenchConfig, args: argparse.Namespace) -> int:
    service = _open(config, args.folder)
    importer = CsvImporter(
        config.ingest.columns,
        role_separator=config.ingest.role_separator,
        encoding=config.ingest.encoding,
    )
    reference = importer.import_file(args.csv)
    report = verify_user_ids(service.workspace.pool.records(), reference)
    print()
    print(report.describe())
    return 0 if report.ok else 1


def _cmd_report(config: SkaBenchConfig, args: argparse.Namespace) -> int:
    service = _open(config, args.folder)
    workspace = service.workspace
    result = generate_reports(
        workspace.entries,
        workspace.pool.records(),
        args.output_dir,
        membership_filename=config.report.membership_filename,
        users_filename=config.report.users_filename,
    )
    print(f"[*] {result.membership_file}  ({result.membership_rows} row(s))")
    print(f"[*] {result.users_file}  ({result.user_rows} row(s))")
    return 0


_COMMANDS = {
    "summary": _cmd_summary,
    "replace": _cmd_replace,
    "import-csv": _cmd_import_csv,
    "verify": _cmd_verify,
    "report": _cmd_report,
}


# ── Main ──────────────────────────────────────────────────────────────────────


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    overrides = {}
    if args.integration:
        overrides = {"workspace": {"load_environment": Environment.INTEGRATION.value}}
    config = load_config(args.config, overrides=overrides)
    setup_logging(config.logging)

    try:
        return _COMMANDS[args.command](config, args)
    except (WorkspaceError, CodecError, ReplacementError, TabularImportError) as exc:
        logger.error("command_failed", command=args.command, error=str(exc))
        print(f"[!] {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
