"""Intune Backup - UI Module"""

from .console import console, print_backup_record, print_banner, print_summary, setup_logging

__all__ = ["console", "print_backup_record", "print_banner", "print_summary", "setup_logging"]
