#!/usr/bin/env python3
"""
Intune Backup - Main Entry Point

Backup of Intune tenant configuration to a tree of JSON files.
"""

import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from config import Settings
from errors import ExportError, FilesystemError, GraphError
from backup.categories import select_categories
from backup.exporter import CategoryExporter
from backup.models import BackupRecord, Category
from graph.session import GraphSession
from ui.console import (
    backup_logger,
    console,
    print_backup_record,
    print_category_error,
)


@dataclass
class BackupSummary:
    """Outcome of a backup run."""

    # Folder -> {"objects": n, "assignments": n}
    counts: dict[str, dict[str, int]] = field(default_factory=dict)
    # Folder -> error message
    errors: dict[str, str] = field(default_factory=dict)
    records: list[BackupRecord] = field(default_factory=list)
    unreadable_secrets: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    aborted: bool = False

    @property
    def success(self) -> bool:
        return not self.errors and not self.aborted


def _count_records(summary: BackupSummary, category: Category, records: list[BackupRecord]) -> None:
    if not records:
        return
    summary.counts[category.folder] = {
        "objects": sum(1 for r in records if r.type == category.label),
        "assignments": sum(1 for r in records if r.type == f"{category.label} Assignment"),
    }


def run_backup(
    settings: Settings,
    session: Optional[GraphSession] = None,
    on_record: Optional[Callable[[BackupRecord], None]] = print_backup_record,
) -> BackupSummary:
    """Execute a backup of every selected category.

    A Graph or export failure in one category is recorded and the next
    category runs, unless backup_fail_fast is set. Files written before the
    failure stay in the summary. Filesystem and authentication failures
    abort the run.

    Args:
        settings: Application settings.
        session: Graph session to use (one is created and closed otherwise).
        on_record: Called with every BackupRecord.

    Returns:
        Summary of the run.

    Raises:
        AuthenticationError: If no Graph session could be established.
        FilesystemError: If the backup tree could not be written.
    """
    start_time = time.time()
    root = Path(settings.backup_path)
    summary = BackupSummary()

    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Could not create {root}: {e}", path=str(root)) from e

    owns_session = session is None
    if session is None:
        session = GraphSession(settings)

    def record_written(record: BackupRecord) -> None:
        summary.records.append(record)
        if on_record:
            on_record(record)

    try:
        session.connect()
        exporter = CategoryExporter(session, root, on_record=record_written)

        for category in select_categories(settings.get_categories()):
            first_record = len(summary.records)
            try:
                objects = exporter.fetch(category)
                exporter.export_objects(category, objects)
                if settings.backup_include_assignments and category.assignments:
                    exporter.export_assignments(category, objects)
            except (GraphError, ExportError) as e:
                backup_logger.debug(f"Failed to back up {category.folder}: {e}")
                summary.errors[category.folder] = str(e)
                print_category_error(category.folder, str(e))
                if settings.backup_fail_fast:
                    summary.aborted = True
                    console.print("[yellow]Fail-fast enabled, skipping remaining categories[/]")
                    break
                continue
            finally:
                # Files written before a failure still count
                _count_records(summary, category, summary.records[first_record:])

        summary.unreadable_secrets = list(exporter.unreadable_secrets)

    finally:
        if owns_session:
            session.close()
        summary.duration_seconds = time.time() - start_time

    return summary


def main() -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    from cli import app

    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
