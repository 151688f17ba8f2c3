"""Tests for npm outdated normalization."""

import json
from unittest.mock import patch

from helpers import tool_error, tool_findings, tool_ok

from rabbithole.manifest import ManifestStore
from rabbithole.models import MISSING_VERSION, DependencyKind
from rabbithole.outdated import get_outdated, parse_outdated_output


def entry(current="1.0.0", wanted="1.0.1", latest="2.0.0", location="node_modules/x") -> dict:
    return {"current": current, "wanted": wanted, "latest": latest, "location": location}


class TestParseOutdatedOutput:
    """Tests for parse_outdated_output."""

    def test_empty_map(self):
        """Scenario: nothing outdated."""
        result = parse_outdated_output({}, set())
        assert result.packages == []
        assert result.total == 0

    def test_kind_comes_from_manifest(self):
        data = {"vitest": entry(), "express": entry()}
        result = parse_outdated_output(data, {"vitest"})
        kinds = {p.name: p.kind for p in result.packages}
        assert kinds == {"vitest": DependencyKind.DEV, "express": DependencyKind.DIRECT}

    def test_direct_before_dev_then_by_name(self):
        data = {
            "zod": entry(),
            "vitest": entry(),
            "axios": entry(),
            "eslint": entry(),
        }
        result = parse_outdated_output(data, {"vitest", "eslint"})
        assert result.names == ["axios", "zod", "eslint", "vitest"]

    def test_missing_current_version(self):
        data = {"left-pad": {"wanted": "1.3.0", "latest": "1.3.0"}}
        pkg = parse_outdated_output(data, set()).packages[0]
        assert pkg.current == MISSING_VERSION
        assert pkg.location == ""

    def test_fields_are_copied(self):
        data = {"express": entry("4.18.0", "4.18.2", "5.0.0", "node_modules/express")}
        pkg = parse_outdated_output(data, set()).packages[0]
        assert (pkg.current, pkg.wanted, pkg.latest) == ("4.18.0", "4.18.2", "5.0.0")
        assert pkg.location == "node_modules/express"
        assert pkg.is_major

    def test_malformed_entries_are_skipped(self):
        result = parse_outdated_output({"ok": entry(), "bad": "1.0.0"}, set())
        assert result.names == ["ok"]

    def test_non_object_payload(self):
        assert parse_outdated_output([1, 2], set()).total == 0


class TestGetOutdated:
    """Tests for get_outdated with the npm subprocess mocked out."""

    @patch("rabbithole.outdated.run_tool")
    def test_outdated_packages(self, mock_run, store):
        payload = {
            "vitest": entry("1.0.0", "1.6.0", "2.1.0"),
            "express": entry("4.18.0", "4.21.0", "5.0.0"),
        }
        mock_run.return_value = tool_findings(json.dumps(payload))

        result = get_outdated(store)

        assert result.names == ["express", "vitest"]
        assert result.packages[1].is_dev
        mock_run.assert_called_once_with(
            ["npm", "outdated", "--json"], cwd=store.project_dir, timeout=None
        )

    @patch("rabbithole.outdated.run_tool")
    def test_nothing_outdated(self, mock_run, store):
        mock_run.return_value = tool_ok("")
        assert get_outdated(store).total == 0

    @patch("rabbithole.outdated.run_tool")
    def test_empty_object(self, mock_run, store):
        mock_run.return_value = tool_ok("{}")
        result = get_outdated(store)
        assert result.total == 0
        assert result.packages == []

    @patch("rabbithole.outdated.run_tool")
    def test_failure_degrades_to_empty(self, mock_run, store):
        mock_run.return_value = tool_error(stderr="npm ERR! network")
        assert get_outdated(store).total == 0

    @patch("rabbithole.outdated.run_tool")
    def test_invalid_json_degrades_to_empty(self, mock_run, store):
        mock_run.return_value = tool_findings("{broken")
        assert get_outdated(store).total == 0

    @patch("rabbithole.outdated.run_tool")
    def test_missing_manifest(self, mock_run, tmp_path):
        result = get_outdated(ManifestStore(tmp_path))
        assert result.total == 0
        mock_run.assert_not_called()
