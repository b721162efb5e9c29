"""
Intune Backup - Category Table

Every exported kind of Intune object, in export order.
"""

from . import transforms
from .models import Category

# Store apps nobody assigned are Microsoft catalog entries, not tenant configuration
CLIENT_APPS_FILTER = (
    "(microsoft.graph.managedApp/appAvailability eq null "
    "or microsoft.graph.managedApp/appAvailability eq 'lineOfBusiness' "
    "or isAssigned eq true)"
)

CATEGORIES: tuple[Category, ...] = (
    Category(
        key="autopilot",
        label="Autopilot Deployment Profile",
        folder="Autopilot Deployment Profiles",
        collection="deviceManagement/windowsAutopilotDeploymentProfiles",
    ),
    Category(
        key="client-apps",
        label="Client App",
        folder="Client Apps",
        collection="deviceAppManagement/mobileApps",
        query={"$filter": CLIENT_APPS_FILTER},
        transform=transforms.client_app,
        file_name=transforms.client_app_file_name,
    ),
    Category(
        key="settings-catalog",
        label="Settings Catalog",
        folder="Settings Catalog",
        collection="deviceManagement/configurationPolicies",
        name_field="name",
        transform=transforms.settings_catalog_policy,
    ),
    Category(
        key="compliance",
        label="Device Compliance Policy",
        folder="Device Compliance Policies",
        collection="deviceManagement/deviceCompliancePolicies",
    ),
    Category(
        key="device-configurations",
        label="Device Configuration",
        folder="Device Configurations",
        collection="deviceManagement/deviceConfigurations",
        transform=transforms.device_configuration,
    ),
    Category(
        key="health-scripts",
        label="Device Health Script",
        folder="Device Health Scripts",
        collection="deviceManagement/deviceHealthScripts",
        transform=transforms.device_health_script,
    ),
    Category(
        key="management-scripts",
        label="Device Management Script",
        folder="Device Management Scripts",
        collection="deviceManagement/deviceManagementScripts",
        transform=transforms.device_management_script,
    ),
    Category(
        key="group-policy",
        label="Administrative Template",
        folder="Administrative Templates",
        collection="deviceManagement/groupPolicyConfigurations",
        transform=transforms.group_policy_configuration,
    ),
    Category(
        key="intents",
        label="Device Management Intent",
        folder="Device Management Intents",
        collection="deviceManagement/intents",
        transform=transforms.management_intent,
    ),
    Category(
        key="app-protection",
        label="App Protection Policy",
        folder="App Protection Policies",
        collection="deviceAppManagement/managedAppPolicies",
        assignments_collection=transforms.app_protection_collection,
    ),
)

CATEGORY_KEYS: tuple[str, ...] = tuple(c.key for c in CATEGORIES)


def select_categories(keys: list[str]) -> list[Category]:
    """Categories matching keys, in table order (all when keys is empty)."""
    if not keys:
        return list(CATEGORIES)
    return [c for c in CATEGORIES if c.key in keys]
