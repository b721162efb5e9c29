"""Intune Backup - Backup Module"""

from .categories import CATEGORIES, select_categories
from .exporter import CategoryExporter, sanitize_filename
from .models import BackupRecord, Category, ExportDocument

__all__ = [
    "CATEGORIES",
    "BackupRecord",
    "Category",
    "CategoryExporter",
    "ExportDocument",
    "sanitize_filename",
    "select_categories",
]
