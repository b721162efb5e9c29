"""
Intune Backup - Console UI Module

Provides rich console output with tables and formatted logging.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.logging import RichHandler
import logging

if TYPE_CHECKING:
    from backup.models import BackupRecord
    from main import BackupSummary

# Global console instance
console = Console()

# Shared logger for backup progress messages
backup_logger = logging.getLogger("intune_backup")


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with Rich handler."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def print_banner(backup_path: str, api_version: str) -> None:
    """Print the startup banner with target path and API version."""
    banner = Text()
    banner.append("Intune Backup\n", style="bold cyan")
    banner.append(f"Path: {backup_path}\n", style="dim")
    banner.append(f"API version: {api_version}\n", style="dim")
    banner.append(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", style="dim")

    console.print(Panel(banner, title="[bold]Backup Started[/]", border_style="cyan"))


def print_backup_record(record: "BackupRecord") -> None:
    """Print a single backup record line."""
    console.print(
        f"  [green]✓[/] [dim]{record.action}[/] [cyan]{record.type}[/]: "
        f"{record.name} [dim]→ {record.path}[/]"
    )


def print_category_error(label: str, error: str) -> None:
    """Print a failed category."""
    console.print(f"  [red]✗[/] {label}: [red]{error}[/]")


def print_summary(summary: "BackupSummary") -> None:
    """Print the final backup summary table."""
    table = Table(title="Backup Summary", show_header=True, header_style="bold cyan")
    table.add_column("Category", style="cyan", width=32)
    table.add_column("Objects", style="green", justify="right")
    table.add_column("Assignments", style="green", justify="right")

    for label, counts in summary.counts.items():
        table.add_row(label, str(counts.get("objects", 0)), str(counts.get("assignments", 0)))

    for label in summary.errors:
        if label not in summary.counts:
            table.add_row(label, "[red]failed[/]", "[dim]-[/]")

    table.add_row("Files Written", str(len(summary.records)), "")
    if summary.unreadable_secrets:
        table.add_row(
            "Unreadable Secrets", f"[yellow]{len(summary.unreadable_secrets)}[/]", ""
        )
    table.add_row("Duration", format_duration(summary.duration_seconds), "")

    if summary.errors:
        table.add_row("Errors", f"[red]{len(summary.errors)}[/]", "")

    console.print()
    console.print(table)


def print_completion(success: bool = True) -> None:
    """Print completion message."""
    if success:
        console.print("\n[bold green]✓ Backup completed successfully[/]")
    else:
        console.print("\n[bold red]✗ Backup completed with errors[/]")


def print_error(message: str, exception: Optional[Exception] = None) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/] {message}")
    if exception:
        console.print(f"[dim]{type(exception).__name__}: {exception}[/]")


def format_duration(seconds: float) -> str:
    """Format seconds to human-readable duration."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"
