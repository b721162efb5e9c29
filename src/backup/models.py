"""
Intune Backup - Data Structures

Categories, export documents and the records emitted for every written file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from graph.session import GraphSession


@dataclass(frozen=True)
class BackupRecord:
    """One written file, reported to the operator."""

    type: str
    name: str
    path: str  # relative to the backup root
    action: str = "Backup"


@dataclass
class ExportDocument:
    """What gets serialized for one object."""

    payload: Any
    subfolder: Optional[str] = None
    # Relative path (inside the object's folder) -> raw file content
    attachments: dict[str, bytes] = field(default_factory=dict)


@dataclass
class ExportContext:
    """Handles a transform needs while exporting one category."""

    session: "GraphSession"
    root: Path
    category: "Category"
    unreadable_secrets: list[str] = field(default_factory=list)


Transform = Callable[[ExportContext, dict], ExportDocument]


@dataclass(frozen=True)
class Category:
    """A kind of Intune object with its collection and output folder."""

    key: str
    label: str
    folder: str
    collection: str
    query: Optional[dict[str, str]] = None
    name_field: str = "displayName"
    transform: Optional[Transform] = None
    file_name: Optional[Callable[[dict], str]] = None
    assignments: bool = True
    assignments_collection: Optional[Callable[[dict], Optional[str]]] = None

    def display_name(self, obj: dict) -> str:
        """Name shown in records, falling back to the object id."""
        return obj.get(self.name_field) or obj.get("id", "")

    def file_stem(self, obj: dict) -> str:
        """Unsanitized file name (without extension) for an object."""
        if self.file_name:
            return self.file_name(obj)
        return self.display_name(obj)

    def assignments_path(self, obj: dict) -> Optional[str]:
        """Assignments collection of an object, None if it cannot be assigned."""
        collection = (
            self.assignments_collection(obj) if self.assignments_collection else self.collection
        )
        if collection is None:
            return None
        return f"{collection}/{obj['id']}/assignments"
