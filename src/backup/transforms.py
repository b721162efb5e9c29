"""
Intune Backup - Category Transforms

Per-category steps that turn a fetched object into its exported document.
"""

import base64
from typing import Any, Optional

from .exporter import sanitize_filename
from .models import ExportContext, ExportDocument
from .oma_settings import WARNINGS_FILE_NAME, needs_secret_resolution, resolve_oma_settings

SCRIPT_CONTENT_FOLDER = "Script Content"
MOBILECONFIG_FOLDER = "mobileconfig"

# App protection policy types that can be assigned
APP_PROTECTION_ASSIGNMENT_COLLECTIONS = {
    "#microsoft.graph.androidManagedAppProtection": "androidManagedAppProtections",
    "#microsoft.graph.iosManagedAppProtection": "iosManagedAppProtections",
    "#microsoft.graph.mdmWindowsInformationProtectionPolicy": "mdmWindowsInformationProtectionPolicies",
    "#microsoft.graph.windowsInformationProtectionPolicy": "windowsInformationProtectionPolicies",
}


def _odata_type_name(obj: dict) -> str:
    """'#microsoft.graph.win32LobApp' -> 'win32LobApp'."""
    return (obj.get("@odata.type") or "").split(".")[-1]


def _decode(content: Optional[str]) -> Optional[bytes]:
    if not content:
        return None
    return base64.b64decode(content)


def client_app_file_name(app: dict) -> str:
    """Client apps are prefixed with their type so store and LOB apps don't clash."""
    return f"{_odata_type_name(app)}_{app.get('displayName', '')}"


def app_protection_collection(policy: dict) -> Optional[str]:
    """Type-specific collection an app protection policy's assignments live under.

    Returns None for policy types without an assignments endpoint
    (e.g. defaultManagedAppProtection).
    """
    collection = APP_PROTECTION_ASSIGNMENT_COLLECTIONS.get(policy.get("@odata.type"))
    if collection is None:
        return None
    return f"deviceAppManagement/{collection}"


def client_app(context: ExportContext, app: dict) -> ExportDocument:
    """Re-fetch the app; the list response omits type-specific properties."""
    return ExportDocument(context.session.get(f"deviceAppManagement/mobileApps/{app['id']}"))


def settings_catalog_policy(context: ExportContext, policy: dict) -> ExportDocument:
    """Expand the policy's settings collection into the document."""
    payload = dict(policy)
    payload["settings"] = context.session.paginate(
        f"deviceManagement/configurationPolicies/{policy['id']}/settings"
    )
    return ExportDocument(payload)


def device_configuration(context: ExportContext, configuration: dict) -> ExportDocument:
    """Decrypt custom OMA settings and extract Apple configuration profiles."""
    payload = configuration
    if needs_secret_resolution(configuration):
        payload, unreadable = resolve_oma_settings(
            context.session, configuration, context.root / WARNINGS_FILE_NAME
        )
        context.unreadable_secrets.extend(unreadable)

    attachments = {}
    profile = _decode(configuration.get("payload"))
    if profile is not None and configuration.get("payloadFileName"):
        file_name = sanitize_filename(configuration["payloadFileName"])
        attachments[f"{MOBILECONFIG_FOLDER}/{file_name}"] = profile

    return ExportDocument(payload, attachments=attachments)


def device_health_script(context: ExportContext, script: dict) -> ExportDocument:
    """Re-fetch the script with content and extract both PowerShell files."""
    payload = context.session.get(f"deviceManagement/deviceHealthScripts/{script['id']}")
    name = sanitize_filename(payload.get("displayName") or script["id"])

    attachments = {}
    detection = _decode(payload.get("detectionScriptContent"))
    if detection is not None:
        attachments[f"{SCRIPT_CONTENT_FOLDER}/{name}_detection.ps1"] = detection
    remediation = _decode(payload.get("remediationScriptContent"))
    if remediation is not None:
        attachments[f"{SCRIPT_CONTENT_FOLDER}/{name}_remediation.ps1"] = remediation

    return ExportDocument(payload, attachments=attachments)


def device_management_script(context: ExportContext, script: dict) -> ExportDocument:
    """Re-fetch the script with content and extract it under its file name."""
    payload = context.session.get(f"deviceManagement/deviceManagementScripts/{script['id']}")

    attachments = {}
    content = _decode(payload.get("scriptContent"))
    if content is not None and payload.get("fileName"):
        attachments[f"{SCRIPT_CONTENT_FOLDER}/{sanitize_filename(payload['fileName'])}"] = content

    return ExportDocument(payload, attachments=attachments)


def group_policy_configuration(context: ExportContext, configuration: dict) -> ExportDocument:
    """Export the configured definition values in importable form.

    Definitions and presentations are referenced through @odata.bind URLs
    instead of being embedded.
    """
    session = context.session
    base = f"deviceManagement/groupPolicyConfigurations/{configuration['id']}/definitionValues"
    definitions_url = f"{session.api_root}/deviceManagement/groupPolicyDefinitions"

    values: list[dict[str, Any]] = []
    for definition_value in session.paginate(base, params={"$expand": "definition"}):
        definition_id = (definition_value.get("definition") or {}).get("id")
        entry: dict[str, Any] = {
            "enabled": definition_value.get("enabled"),
            "definition@odata.bind": f"{definitions_url}('{definition_id}')",
        }

        presentation_values = session.paginate(
            f"{base}/{definition_value['id']}/presentationValues",
            params={"$expand": "presentation"},
        )
        if presentation_values:
            entry["presentationValues"] = [
                _presentation_value(pv, f"{definitions_url}('{definition_id}')")
                for pv in presentation_values
            ]

        values.append(entry)

    return ExportDocument(values)


def _presentation_value(value: dict, definition_url: str) -> dict:
    presentation_id = (value.get("presentation") or {}).get("id")
    entry = {
        k: v
        for k, v in value.items()
        if k not in ("id", "createdDateTime", "lastModifiedDateTime", "presentation")
    }
    entry["presentation@odata.bind"] = f"{definition_url}/presentations('{presentation_id}')"
    return entry


def management_intent(context: ExportContext, intent: dict) -> ExportDocument:
    """Collect the intent's settings delta, grouped under its template name."""
    session = context.session
    template = session.get(f"deviceManagement/templates/{intent['templateId']}")

    settings: list[dict] = []
    for category in session.paginate(f"deviceManagement/intents/{intent['id']}/categories"):
        settings.extend(
            session.paginate(
                f"deviceManagement/intents/{intent['id']}/categories/{category['id']}/settings"
            )
        )

    payload = {
        "displayName": intent.get("displayName"),
        "description": intent.get("description"),
        "templateId": intent.get("templateId"),
        "roleScopeTagIds": intent.get("roleScopeTagIds"),
        "settingsDelta": settings,
    }
    return ExportDocument(payload, subfolder=template.get("displayName") or intent["templateId"])
