"""Tests for building the scan report."""

from unittest.mock import patch

import pytest

from rabbithole.config import Config
from rabbithole.manifest import ManifestError, ManifestStore
from rabbithole.models import (
    AuditResult,
    DependencyKind,
    OutdatedPackage,
    OutdatedResult,
    RegistryMetadata,
    Vulnerability,
)
from rabbithole.scan import build_scan_report


@patch("rabbithole.scan.get_multiple_package_metadata")
@patch("rabbithole.scan.get_outdated")
@patch("rabbithole.scan.run_audit")
class TestBuildScanReport:
    """Tests for build_scan_report with every source mocked."""

    def test_merges_sources(self, mock_audit, mock_outdated, mock_registry, store):
        mock_audit.return_value = AuditResult(
            vulnerabilities=[Vulnerability("lodash", "high", "Prototype Pollution", "", "*", True)]
        )
        mock_outdated.return_value = OutdatedResult(
            packages=[
                OutdatedPackage("express", "4.18.0", "4.21.0", "5.0.0", "", DependencyKind.DIRECT)
            ]
        )
        mock_registry.return_value = [
            RegistryMetadata("express"),
            RegistryMetadata("lodash", deprecated="use lodash-es", is_stale=True),
            RegistryMetadata("vitest", is_stale=True),
        ]

        report = build_scan_report(store)

        assert report.audit.total == 1
        assert report.outdated.names == ["express"]
        assert [m.name for m in report.deprecated] == ["lodash"]
        assert [m.name for m in report.stale] == ["vitest"]

    def test_queries_registry_for_every_declared_name(
        self, mock_audit, mock_outdated, mock_registry, store
    ):
        mock_audit.return_value = AuditResult()
        mock_outdated.return_value = OutdatedResult()
        mock_registry.return_value = []
        config = Config(registry_url="https://npm.example", request_timeout=3.0, npm_command="npm9")

        build_scan_report(store, config)

        mock_registry.assert_called_once_with(
            ["express", "lodash", "vitest", "storybook"],
            base_url="https://npm.example",
            timeout=3.0,
        )
        mock_audit.assert_called_once_with(cwd=store.project_dir, npm="npm9", timeout=None)
        assert mock_outdated.call_args.kwargs["npm"] == "npm9"

    def test_missing_manifest_is_fatal(self, mock_audit, mock_outdated, mock_registry, tmp_path):
        with pytest.raises(ManifestError):
            build_scan_report(ManifestStore(tmp_path))
        mock_audit.assert_not_called()
        mock_registry.assert_not_called()

    def test_degraded_sources_still_report(self, mock_audit, mock_outdated, mock_registry, store):
        mock_audit.return_value = AuditResult()
        mock_outdated.return_value = OutdatedResult()
        mock_registry.return_value = []

        report = build_scan_report(store)

        assert not report.has_issues
