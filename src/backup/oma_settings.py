"""
Intune Backup - OMA Settings Module

Resolves encrypted OMA settings of custom device configurations so the
exported profile can be imported again.
"""

from pathlib import Path
from typing import Any

from errors import FilesystemError, GraphError
from graph.session import GraphSession
from ui.console import backup_logger

CUSTOM_CONFIGURATION_TYPE = "#microsoft.graph.windows10CustomConfiguration"

UNREADABLE_SECRET_VALUE = "[[ENCRYPTED VALUE UNREADABLE: missing permission]]"

WARNINGS_FILE_NAME = "IntuneBackupDeviceConfiguration-warnings.txt"


def needs_secret_resolution(configuration: dict[str, Any]) -> bool:
    """Check if a configuration is a custom profile with encrypted settings."""
    if configuration.get("@odata.type") != CUSTOM_CONFIGURATION_TYPE:
        return False
    return any(s.get("isEncrypted") for s in configuration.get("omaSettings") or [])


def resolve_oma_settings(
    session: GraphSession,
    configuration: dict[str, Any],
    warnings_path: Path,
) -> tuple[dict[str, Any], list[str]]:
    """Build a copy of a configuration with every OMA setting decrypted.

    Encrypted values are revealed through Graph. A value that cannot be
    revealed is replaced by UNREADABLE_SECRET_VALUE and a warning line is
    appended to warnings_path. Either way every resulting setting is marked
    as not encrypted and carries no secret reference.

    Args:
        session: Connected Graph session.
        configuration: Device configuration as fetched from Graph.
        warnings_path: Append-only warnings file.

    Returns:
        Tuple of (resolved configuration copy, unreadable secret reference ids).
    """
    display_name = configuration.get("displayName", "")
    resolved = []
    unreadable = []

    for setting in configuration.get("omaSettings") or []:
        value = setting.get("value")

        if setting.get("isEncrypted"):
            reference_id = setting.get("secretReferenceValueId")
            try:
                value = session.reveal_oma_secret(configuration["id"], reference_id)
            except GraphError as e:
                value = UNREADABLE_SECRET_VALUE
                unreadable.append(reference_id)
                message = (
                    f"Could not read encrypted OMA setting value {reference_id} "
                    f"of device configuration '{display_name}': {e}"
                )
                backup_logger.warning(message)
                append_warning(warnings_path, message)

        resolved.append({
            "@odata.type": setting.get("@odata.type"),
            "displayName": setting.get("displayName"),
            "description": setting.get("description"),
            "omaUri": setting.get("omaUri"),
            "value": value,
            "isEncrypted": False,
            "secretReferenceValueId": None,
        })

    result = dict(configuration)
    result["omaSettings"] = resolved
    return result, unreadable


def append_warning(path: Path, message: str) -> None:
    """Append one line to the warnings file."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(message.replace("\n", " ") + "\n")
    except OSError as e:
        raise FilesystemError(f"Could not append to {path}: {e}", path=str(path)) from e
