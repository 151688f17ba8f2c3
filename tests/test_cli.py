"""Tests for CLI."""

import json
from unittest.mock import MagicMock, patch

import pytest

from rabbithole import __version__
from rabbithole.cli import build_parser, main
from rabbithole.config import Config
from rabbithole.models import (
    AuditResult,
    OutdatedResult,
    ScanReport,
    UpdateOptions,
    UpdateResult,
)
from rabbithole.update_flow import UpdateFlowOutcome


@pytest.fixture
def config(tmp_path):
    config = Config(_path=tmp_path / "config.toml")
    with patch("rabbithole.cli.load_config", return_value=config):
        yield config


class TestParser:
    def test_update_defaults(self):
        args = build_parser().parse_args(["update"])
        assert args.packages == []
        assert args.all is False
        assert args.exact is None
        assert args.force is False
        assert args.fix is False

    def test_update_flags(self):
        args = build_parser().parse_args(["update", "express", "lodash", "-a", "--no-exact", "-f"])
        assert args.packages == ["express", "lodash"]
        assert args.all is True
        assert args.exact is False
        assert args.force is True


class TestCLI:
    @patch("sys.argv", ["rabbithole", "--version"])
    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0
        assert capsys.readouterr().out.strip() == f"rabbithole {__version__}"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out


class TestScanCommand:
    """Tests for `rabbithole scan`."""

    def test_missing_manifest(self, config, tmp_path):
        assert main(["scan", "--path", str(tmp_path)]) == 1

    @patch("rabbithole.scan.build_scan_report")
    def test_json_output(self, mock_build, config, project, capsys):
        mock_build.return_value = ScanReport.from_sources(AuditResult(), OutdatedResult(), [])

        assert main(["scan", "--json", "--path", str(project)]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["audit"]["total"] == 0
        assert data["outdated"]["packages"] == []
        assert mock_build.call_args.args[1] is config

    @patch("rabbithole.scan.build_scan_report")
    def test_rendered_output(self, mock_build, config, project):
        mock_build.return_value = ScanReport.from_sources(AuditResult(), OutdatedResult(), [])
        with patch("rabbithole.display.render_report") as mock_render:
            assert main(["scan", "--path", str(project)]) == 0
        mock_render.assert_called_once()


class TestUpdateCommand:
    """Tests for `rabbithole update`."""

    def test_missing_manifest(self, config, tmp_path):
        assert main(["update", "--path", str(tmp_path)]) == 1

    @patch("rabbithole.update_flow.UpdateFlow")
    def test_builds_options(self, mock_flow_cls, config, project):
        flow = MagicMock()
        mock_flow_cls.return_value = flow

        assert main(["update", "express", "--force", "--fix", "--path", str(project)]) == 0

        packages, options = flow.run.call_args.args
        assert packages == ["express"]
        assert options == UpdateOptions(all=False, exact=True, force=True, fix=True)
        assert mock_flow_cls.call_args.kwargs["npm"] == "npm"

    @patch("rabbithole.update_flow.UpdateFlow")
    def test_exact_from_config(self, mock_flow_cls, config, project):
        config.exact = False

        main(["update", "--all", "--path", str(project)])

        options = mock_flow_cls.return_value.run.call_args.args[1]
        assert options.exact is False
        assert options.all is True

    @patch("rabbithole.update_flow.UpdateFlow")
    def test_exact_flag_overrides_config(self, mock_flow_cls, config, project):
        config.exact = False

        main(["update", "--exact", "--path", str(project)])

        assert mock_flow_cls.return_value.run.call_args.args[1].exact is True

    @patch("rabbithole.update_flow.UpdateFlow")
    def test_exit_code_after_forced_retry(self, mock_flow_cls, config, project):
        """A package that succeeded on the forced retry does not fail the command."""
        mock_flow_cls.return_value.run.return_value = UpdateFlowOutcome(
            update_results=[UpdateResult("storybook", "7.6.0", "7.6.0", False, "conflict")],
            retry_results=[UpdateResult("storybook", "7.6.0", "8.0.0", True)],
        )

        assert main(["update", "storybook", "--path", str(project)]) == 0

    @patch("rabbithole.update_flow.UpdateFlow")
    def test_exit_code_when_update_still_fails(self, mock_flow_cls, config, project):
        mock_flow_cls.return_value.run.return_value = UpdateFlowOutcome(
            update_results=[
                UpdateResult("express", "4.18.0", "5.0.0", True),
                UpdateResult("ghost", "unknown", "unknown", False, "Package not found"),
            ],
        )

        assert main(["update", "express", "ghost", "--path", str(project)]) == 1


class TestConfigCommand:
    """Tests for `rabbithole config`."""

    def test_show(self, config, capsys):
        assert main(["config"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["npm_command"] == "npm"
        assert data["command_timeout"] is None

    def test_set(self, config, capsys):
        assert main(["config", "--set", "exact=false", "--set", "command_timeout=300"]) == 0
        assert config.exact is False
        assert config.command_timeout == 300.0
        assert config._path.exists()
        assert json.loads(capsys.readouterr().out)["exact"] is False

    def test_set_unknown_key(self, config, capsys):
        assert main(["config", "--set", "theme=dark"]) == 1
        assert "Unknown config key" in capsys.readouterr().err

    def test_set_without_equals(self, config, capsys):
        assert main(["config", "--set", "exact"]) == 1
        assert "KEY=VALUE" in capsys.readouterr().err
