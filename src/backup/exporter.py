"""
Intune Backup - Category Exporter Module

Exports the objects of a category (and their assignments) to JSON files.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Optional

from errors import ExportError, FilesystemError
from graph.session import GraphSession
from ui.console import backup_logger
from .models import BackupRecord, Category, ExportContext, ExportDocument

ASSIGNMENTS_FOLDER = "Assignments"

# Host invalid characters (control chars, separators) plus the Windows set
INVALID_FILENAME_CHARS = frozenset(
    [chr(c) for c in range(32)]
    + list(':\\/<>|"?*')
    + [sep for sep in (os.sep, os.altsep) if sep]
)


def sanitize_filename(name: str) -> str:
    """Replace every character that is invalid in a file name with '_'."""
    return "".join("_" if ch in INVALID_FILENAME_CHARS else ch for ch in name)


class CategoryExporter:
    """Exports category objects to one JSON file per object."""

    def __init__(
        self,
        session: GraphSession,
        root: Path,
        on_record: Optional[Callable[[BackupRecord], None]] = None,
    ):
        """Initialize the category exporter.

        Args:
            session: Connected Graph session.
            root: Backup root directory.
            on_record: Called with every BackupRecord as files are written.
        """
        self.session = session
        self.root = root
        self.on_record = on_record
        self.unreadable_secrets: list[str] = []

    def fetch(self, category: Category) -> list[dict]:
        """Fetch every object of a category."""
        backup_logger.debug(f"Fetching {category.label}...")
        return self.session.paginate(category.collection, params=category.query)

    def export_objects(self, category: Category, objects: list[dict]) -> list[BackupRecord]:
        """Write one JSON file per object.

        Folders are only created once a file is written, so an empty
        collection leaves no trace on disk.

        Args:
            category: The category being exported.
            objects: Objects as returned by fetch().

        Returns:
            Records of the written object files.
        """
        context = ExportContext(
            session=self.session,
            root=self.root,
            category=category,
            unreadable_secrets=self.unreadable_secrets,
        )
        records = []

        for obj in objects:
            document = self._document(category, context, obj)

            folder = self.root / category.folder
            if document.subfolder:
                folder = folder / sanitize_filename(document.subfolder)

            path = folder / f"{self._file_stem(category, obj)}.json"
            self._write_json(document.payload, path)

            for relative, content in document.attachments.items():
                self._write_bytes(content, folder / relative)

            records.append(self._emit(category.label, category.display_name(obj), path))

        return records

    def export_assignments(self, category: Category, objects: list[dict]) -> list[BackupRecord]:
        """Write the assignments of every object to <folder>/Assignments.

        Objects without assignments, or of a type that cannot be assigned,
        produce no file.
        """
        records = []

        for obj in objects:
            assignments_path = category.assignments_path(obj)
            if assignments_path is None:
                backup_logger.debug(
                    f"{category.label} '{category.display_name(obj)}' has no assignments endpoint"
                )
                continue

            assignments = self.session.paginate(assignments_path)
            if not assignments:
                continue

            path = (
                self.root
                / category.folder
                / ASSIGNMENTS_FOLDER
                / f"{self._file_stem(category, obj)}.json"
            )
            self._write_json(assignments, path)
            records.append(
                self._emit(f"{category.label} Assignment", category.display_name(obj), path)
            )

        return records

    @staticmethod
    def _document(category: Category, context: ExportContext, obj: dict) -> ExportDocument:
        if not category.transform:
            return ExportDocument(obj)
        try:
            return category.transform(context, obj)
        except (KeyError, ValueError) as e:
            # Malformed object (missing property, undecodable base64 content)
            raise ExportError(
                f"Could not export {category.label} '{category.display_name(obj)}': "
                f"{type(e).__name__}: {e}"
            ) from e

    @staticmethod
    def _file_stem(category: Category, obj: dict) -> str:
        return sanitize_filename(category.file_stem(obj)) or sanitize_filename(obj.get("id", ""))

    def _emit(self, record_type: str, name: str, path: Path) -> BackupRecord:
        record = BackupRecord(
            type=record_type,
            name=name,
            path=path.relative_to(self.root).as_posix(),
        )
        if self.on_record:
            self.on_record(record)
        return record

    @staticmethod
    def _write_json(data: Any, path: Path) -> None:
        """Write data to a JSON file, creating its folder if needed."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise FilesystemError(f"Could not write {path}: {e}", path=str(path)) from e

    @staticmethod
    def _write_bytes(content: bytes, path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise FilesystemError(f"Could not write {path}: {e}", path=str(path)) from e
