"""
Intune Backup - Backup Run Tests

Tests for running a backup across categories.
"""

import json
from pathlib import Path

import pytest
import responses
from typer.testing import CliRunner

import main
from cli import app
from errors import FilesystemError
from graph.session import GraphSession
from main import run_backup

from conftest import add_collection, add_error

COMPLIANCE_PATH = "deviceManagement/deviceCompliancePolicies"
CONFIGURATIONS_PATH = "deviceManagement/deviceConfigurations"


class TestRunBackup:
    """Tests for run_backup."""

    def test_selected_categories_backed_up(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance"
        add_collection(mock_graph, COMPLIANCE_PATH, [{"id": "p1", "displayName": "Baseline"}])
        add_collection(mock_graph, f"{COMPLIANCE_PATH}/p1/assignments", [{"id": "a1"}])

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        root = Path(test_settings.backup_path)
        assert summary.success is True
        assert summary.counts == {"Device Compliance Policies": {"objects": 1, "assignments": 1}}
        assert (root / "Device Compliance Policies" / "Baseline.json").exists()
        assert (root / "Device Compliance Policies" / "Assignments" / "Baseline.json").exists()
        assert [r.type for r in summary.records] == [
            "Device Compliance Policy",
            "Device Compliance Policy Assignment",
        ]

    def test_assignments_disabled(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance"
        test_settings.backup_include_assignments = False
        add_collection(mock_graph, COMPLIANCE_PATH, [{"id": "p1", "displayName": "Baseline"}])

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        assert summary.counts["Device Compliance Policies"]["assignments"] == 0
        assert not (Path(test_settings.backup_path) / "Device Compliance Policies" / "Assignments").exists()

    def test_failed_category_does_not_stop_run(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance,device-configurations"
        add_error(mock_graph, COMPLIANCE_PATH, 500, "Internal error")
        add_collection(mock_graph, CONFIGURATIONS_PATH, [{"id": "c1", "displayName": "Camera"}])
        add_collection(mock_graph, f"{CONFIGURATIONS_PATH}/c1/assignments", [])

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        assert summary.success is False
        assert summary.aborted is False
        assert list(summary.errors) == ["Device Compliance Policies"]
        assert "Internal error" in summary.errors["Device Compliance Policies"]
        assert summary.counts == {"Device Configurations": {"objects": 1, "assignments": 0}}
        assert (Path(test_settings.backup_path) / "Device Configurations" / "Camera.json").exists()

    def test_fail_fast_stops_run(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance,device-configurations"
        test_settings.backup_fail_fast = True
        add_error(mock_graph, COMPLIANCE_PATH, 403, "Forbidden")

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        assert summary.aborted is True
        assert list(summary.errors) == ["Device Compliance Policies"]
        assert summary.counts == {}
        assert len(mock_graph.calls) == 1

    def test_default_app_protection_policy_does_not_fail_category(
        self, test_settings, graph_session, mock_graph
    ):
        test_settings.backup_categories = "app-protection"
        test_settings.backup_fail_fast = True
        add_collection(
            mock_graph,
            "deviceAppManagement/managedAppPolicies",
            [
                {
                    "id": "m1",
                    "displayName": "Android",
                    "@odata.type": "#microsoft.graph.androidManagedAppProtection",
                },
                {
                    "id": "d1",
                    "displayName": "Default",
                    "@odata.type": "#microsoft.graph.defaultManagedAppProtection",
                },
            ],
        )
        add_collection(
            mock_graph,
            "deviceAppManagement/androidManagedAppProtections/m1/assignments",
            [{"id": "a1"}],
        )

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        assert summary.success is True
        assert summary.counts == {"App Protection Policies": {"objects": 2, "assignments": 1}}
        assert len(summary.records) == 3

    def test_records_kept_when_assignments_fail(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance"
        add_collection(mock_graph, COMPLIANCE_PATH, [{"id": "p1", "displayName": "Baseline"}])
        add_error(mock_graph, f"{COMPLIANCE_PATH}/p1/assignments", 500, "Internal error")

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        assert list(summary.errors) == ["Device Compliance Policies"]
        assert summary.counts == {"Device Compliance Policies": {"objects": 1, "assignments": 0}}
        assert [r.path for r in summary.records] == ["Device Compliance Policies/Baseline.json"]

    def test_malformed_object_isolated_to_category(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance,intents"
        add_collection(mock_graph, "deviceManagement/intents", [{"id": "i1", "displayName": "BitLocker"}])
        add_collection(mock_graph, COMPLIANCE_PATH, [{"id": "p1", "displayName": "Baseline"}])
        add_collection(mock_graph, f"{COMPLIANCE_PATH}/p1/assignments", [])

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        assert list(summary.errors) == ["Device Management Intents"]
        assert summary.counts == {"Device Compliance Policies": {"objects": 1, "assignments": 0}}

    def test_empty_category_leaves_no_trace(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance"
        add_collection(mock_graph, COMPLIANCE_PATH, [])

        summary = run_backup(test_settings, session=graph_session, on_record=None)

        assert summary.success is True
        assert summary.counts == {}
        assert list(Path(test_settings.backup_path).iterdir()) == []

    def test_on_record_receives_every_record(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance"
        add_collection(
            mock_graph,
            COMPLIANCE_PATH,
            [{"id": "p1", "displayName": "A"}, {"id": "p2", "displayName": "B"}],
        )
        add_collection(mock_graph, f"{COMPLIANCE_PATH}/p1/assignments", [])
        add_collection(mock_graph, f"{COMPLIANCE_PATH}/p2/assignments", [])
        seen = []

        summary = run_backup(test_settings, session=graph_session, on_record=seen.append)

        assert seen == summary.records
        assert [r.name for r in seen] == ["A", "B"]

    def test_existing_files_overwritten(self, test_settings, graph_session, mock_graph):
        test_settings.backup_categories = "compliance"
        stale = Path(test_settings.backup_path) / "Device Compliance Policies" / "A.json"
        stale.parent.mkdir(parents=True)
        stale.write_text('{"stale": true}', encoding="utf-8")
        add_collection(mock_graph, COMPLIANCE_PATH, [{"id": "p1", "displayName": "A"}])
        add_collection(mock_graph, f"{COMPLIANCE_PATH}/p1/assignments", [])

        run_backup(test_settings, session=graph_session, on_record=None)

        assert json.loads(stale.read_text("utf-8")) == {"id": "p1", "displayName": "A"}

    def test_unwritable_backup_path(self, test_settings, graph_session, temp_dir):
        blocker = temp_dir / "not-a-directory"
        blocker.write_text("", encoding="utf-8")
        test_settings.backup_path = str(blocker / "backup")

        with pytest.raises(FilesystemError):
            run_backup(test_settings, session=graph_session, on_record=None)


class TestCli:
    """Tests for the command-line interface."""

    @pytest.fixture
    def cli_env(self, monkeypatch, credential_factory):
        """Environment for `backup` with sign-in handled by a fake credential."""
        monkeypatch.setenv("GRAPH_TENANT_ID", "contoso.onmicrosoft.com")
        monkeypatch.setenv("GRAPH_CLIENT_ID", "client-id")
        monkeypatch.setenv("GRAPH_CLIENT_SECRET", "test-secret")
        monkeypatch.setenv("BACKUP_CATEGORIES", "compliance")
        monkeypatch.setattr(
            main,
            "GraphSession",
            lambda settings: GraphSession(settings, credential_factory=credential_factory),
        )

    def test_backup_command_succeeds(self, cli_env, mock_graph, temp_dir):
        add_collection(mock_graph, COMPLIANCE_PATH, [{"id": "p1", "displayName": "Baseline"}])
        add_collection(mock_graph, f"{COMPLIANCE_PATH}/p1/assignments", [])
        target = temp_dir / "out"

        result = CliRunner().invoke(app, ["backup", str(target)])

        assert result.exit_code == 0, result.output
        assert (target / "Device Compliance Policies" / "Baseline.json").exists()

    def test_backup_command_fails_on_category_error(self, cli_env, mock_graph, temp_dir):
        add_error(mock_graph, COMPLIANCE_PATH, 500, "Internal error")

        result = CliRunner().invoke(app, ["backup", str(temp_dir / "out")])

        assert result.exit_code == 1

    def test_backup_command_fails_on_unwritable_path(self, cli_env, temp_dir):
        blocker = temp_dir / "not-a-directory"
        blocker.write_text("", encoding="utf-8")

        result = CliRunner().invoke(app, ["backup", str(blocker / "out")])

        assert result.exit_code == 1

    def test_backup_command_api_version(self, cli_env, mock_graph, temp_dir):
        v1 = "https://graph.microsoft.com/v1.0"
        mock_graph.add(
            responses.GET,
            f"{v1}/{COMPLIANCE_PATH}",
            json={"value": [{"id": "p1", "displayName": "Baseline"}]},
        )
        mock_graph.add(responses.GET, f"{v1}/{COMPLIANCE_PATH}/p1/assignments", json={"value": []})

        result = CliRunner().invoke(app, ["backup", str(temp_dir / "out"), "--api-version", "v1.0"])

        assert result.exit_code == 0, result.output
        assert all(call.request.url.startswith(f"{v1}/") for call in mock_graph.calls)

    def test_categories_command(self):
        result = CliRunner().invoke(app, ["categories"])

        assert result.exit_code == 0
        assert "compliance" in result.output
        assert "app-protection" in result.output
