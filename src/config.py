"""
Intune Backup - Configuration Module

Provides type-safe configuration using Pydantic Settings.
All configuration is loaded from environment variables or .env file.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # === Microsoft Graph Configuration ===
    graph_tenant_id: str = Field(
        description="Entra ID tenant ID or domain of the Intune tenant"
    )
    graph_client_id: str = Field(
        description="Application (client) ID of the app registration"
    )
    graph_client_secret: str = Field(
        default="",
        description="Client secret (empty = interactive device code sign-in)"
    )
    graph_api_version: Literal["v1.0", "Beta"] = Field(
        default="Beta",
        description="Graph API version to export from"
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com",
        description="Graph endpoint (national clouds use a different host)"
    )
    graph_timeout: int = Field(
        default=60,
        ge=1,
        description="Timeout in seconds for a single Graph request"
    )

    # === Backup Configuration ===
    backup_path: str = Field(
        default="./intune-backup",
        description="Directory the JSON tree is written to"
    )
    backup_include_assignments: bool = Field(
        default=True,
        description="Also export the assignments of every object"
    )
    backup_fail_fast: bool = Field(
        default=False,
        description="Abort the whole run when one category fails"
    )
    backup_categories: str = Field(
        default="",
        description="Comma-separated category keys to export (empty = all)"
    )

    @field_validator("backup_categories")
    @classmethod
    def validate_categories(cls, v: str) -> str:
        """Validate category keys."""
        if not v:
            return v
        from backup.categories import CATEGORY_KEYS

        keys = [c.strip().lower() for c in v.split(",") if c.strip()]
        invalid = set(keys) - set(CATEGORY_KEYS)
        if invalid:
            raise ValueError(f"Invalid categories: {sorted(invalid)}. Valid: {list(CATEGORY_KEYS)}")
        return ",".join(keys)

    def get_categories(self) -> list[str]:
        """Get list of selected category keys (empty = all)."""
        if not self.backup_categories:
            return []
        return [c.strip().lower() for c in self.backup_categories.split(",") if c.strip()]

    @property
    def uses_client_secret(self) -> bool:
        """Check if app-only (client credentials) authentication is configured."""
        return bool(self.graph_client_secret and self.graph_client_secret.strip())

    @property
    def api_segment(self) -> str:
        """URL path segment for the selected API version."""
        return "beta" if self.graph_api_version == "Beta" else "v1.0"

    # === Application Configuration ===
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)"
    )
