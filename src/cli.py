"""
Intune Backup - CLI Module

Command-line interface for running backups and checking Graph access.
"""

from enum import Enum
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.table import Table

from config import Settings
from errors import FilesystemError, GraphError
from backup.categories import CATEGORIES
from backup.oma_settings import WARNINGS_FILE_NAME
from graph.session import REQUIRED_SCOPES, GraphSession
from main import run_backup
from ui.console import (
    console,
    print_banner,
    print_completion,
    print_error,
    print_summary,
    setup_logging,
)

# ═══════════════════════════════════════════════════════════════════════════════
# CLI App
# ═══════════════════════════════════════════════════════════════════════════════

app = typer.Typer(
    name="intune-backup",
    help="Intune Backup CLI - Export Intune configuration to JSON files",
    no_args_is_help=True,
)


class ApiVersion(str, Enum):
    v1 = "v1.0"
    beta = "Beta"


def _load_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except ValidationError as e:
        print_error("Invalid configuration", e)
        raise typer.Exit(1)


# ───────────────────────────────────────────────────────────────────────────────
# Backup Command
# ───────────────────────────────────────────────────────────────────────────────
@app.command("backup")
def backup(
    path: Path = typer.Argument(..., help="Output directory for the backup"),
    api_version: ApiVersion = typer.Option(
        ApiVersion.beta, "--api-version", "-a", help="Graph API version"
    ),
):
    """Back up all Intune configuration to PATH."""
    settings = _load_settings(backup_path=str(path), graph_api_version=api_version.value)
    setup_logging(settings.log_level)

    print_banner(str(path.resolve()), settings.graph_api_version)

    try:
        summary = run_backup(settings)
    except (GraphError, FilesystemError) as e:
        print_error("Backup failed", e)
        raise typer.Exit(1)

    print_summary(summary)
    if summary.unreadable_secrets:
        console.print(
            f"[yellow]{len(summary.unreadable_secrets)} encrypted OMA values could not be read, "
            f"see {Path(settings.backup_path) / WARNINGS_FILE_NAME}[/]"
        )
    print_completion(summary.success)

    if not summary.success:
        raise typer.Exit(1)


# ───────────────────────────────────────────────────────────────────────────────
# Categories Command
# ───────────────────────────────────────────────────────────────────────────────
@app.command("categories")
def list_categories():
    """List the exported categories."""
    table = Table(title="Categories", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Folder")
    table.add_column("Collection", style="dim")
    table.add_column("Assignments", justify="center")

    for category in CATEGORIES:
        table.add_row(
            category.key,
            category.folder,
            category.collection,
            "✓" if category.assignments else "-",
        )

    console.print(table)


# ───────────────────────────────────────────────────────────────────────────────
# Permissions Command
# ───────────────────────────────────────────────────────────────────────────────
@app.command("permissions")
def check_permissions():
    """Sign in and show which required permission scopes are granted."""
    settings = _load_settings()
    setup_logging(settings.log_level)

    with GraphSession(settings) as session:
        try:
            session.connect()
        except GraphError as e:
            print_error("Authentication failed", e)
            raise typer.Exit(1)

        missing = set(session.missing_scopes())

    table = Table(title="Permission Scopes", show_header=True, header_style="bold cyan")
    table.add_column("Scope", style="cyan")
    table.add_column("Granted", justify="center")

    for scope in REQUIRED_SCOPES:
        table.add_row(scope, "[red]✗[/]" if scope in missing else "[green]✓[/]")

    console.print(table)

    if missing:
        raise typer.Exit(1)


# ═══════════════════════════════════════════════════════════════════════════════
# Entry Point
# ═══════════════════════════════════════════════════════════════════════════════
if __name__ == "__main__":
    app()
