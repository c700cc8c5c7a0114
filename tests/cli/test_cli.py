"""
CLI tests for the support-monitor commands.

Tests report output, delivery, info, scheduling and teardown commands.
"""

from __future__ import annotations

import socket
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from support_monitor.cli import main
from support_monitor.config import Config

PUBLIC_ADDRESS = "93.184.216.34"
PUBLIC_ADDRINFO = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (PUBLIC_ADDRESS, 0))]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, config):
    """Invoke the CLI with the test config and a public DNS resolver."""

    def _invoke(args, **kwargs):
        with patch("support_monitor.cli.Config.load", return_value=config), patch(
            "support_monitor.uploader.socket.getaddrinfo", return_value=PUBLIC_ADDRINFO
        ):
            return runner.invoke(main, args, **kwargs)

    return _invoke


@pytest.mark.cli
class TestCliReport:
    """Test the 'report' command."""

    def test_report_yaml_default(self, invoke):
        result = invoke(["report"])

        assert result.exit_code == 0
        assert "identity: https://example.org" in result.output
        assert "slug: akismet" in result.output

    def test_report_json(self, invoke):
        result = invoke(["report", "--format", "json"])

        assert result.exit_code == 0
        assert '"identity": "https://example.org"' in result.output
        assert '"kind": "mu-plugin"' in result.output

    def test_report_table(self, invoke):
        result = invoke(["report", "--format", "table"])

        assert result.exit_code == 0
        assert "Add-ons" in result.output
        assert "akismet" in result.output

    def test_report_does_not_post(self, invoke):
        with patch("requests.Session.post") as mock_post:
            invoke(["report"])

        mock_post.assert_not_called()

    def test_report_empty_site_fails(self, invoke, config, tmp_path):
        config.manifest_path = str(tmp_path / "missing.yaml")

        result = invoke(["report"])

        assert result.exit_code == 1
        assert "No data" in result.output


@pytest.mark.cli
class TestCliUpdate:
    """Test the 'update' command."""

    def test_update_success(self, invoke, response_factory):
        with patch("requests.Session.post", return_value=response_factory(200, "accepted")):
            result = invoke(["update"])

        assert result.exit_code == 0
        assert "Report delivered" in result.output
        assert "200" in result.output

    def test_update_server_error_exits_nonzero(self, invoke, response_factory):
        with patch("requests.Session.post", return_value=response_factory(500, "boom")):
            result = invoke(["update"])

        assert result.exit_code == 1
        assert "HTTP 500" in result.output

    def test_update_without_endpoint(self, invoke, config):
        config.api_endpoint = None

        result = invoke(["update"])

        assert result.exit_code == 1
        assert "No API endpoint configured" in result.output

    def test_update_records_last_run(self, invoke, response_factory):
        with patch("requests.Session.post", return_value=response_factory(204)):
            invoke(["update"])

        result = invoke(["info"])
        assert "success" in result.output
        assert "Never" not in result.output


@pytest.mark.cli
class TestCliInfo:
    """Test the 'info' command."""

    def test_info_fresh_install(self, invoke):
        result = invoke(["info"])

        assert result.exit_code == 0
        assert "API Endpoint" in result.output
        assert "s3cret" in result.output
        assert "Never" in result.output
        assert "Not scheduled" in result.output


@pytest.mark.cli
class TestCliScheduling:
    """Test the 'schedule', 'unschedule' and 'uninstall' commands."""

    def test_schedule_then_info(self, invoke):
        result = invoke(["schedule"])
        assert result.exit_code == 0
        assert "Event successfully scheduled" in result.output

        info = invoke(["info"])
        assert "Not scheduled" not in info.output

    def test_schedule_twice(self, invoke):
        invoke(["schedule"])
        result = invoke(["schedule"])

        assert result.exit_code == 0

    def test_unschedule(self, invoke):
        invoke(["schedule"])
        result = invoke(["unschedule"])

        assert result.exit_code == 0
        assert "Event successfully unscheduled" in result.output
        assert "Not scheduled" in invoke(["info"]).output

    def test_unschedule_when_not_scheduled(self, invoke):
        result = invoke(["unschedule"])

        assert result.exit_code == 0

    def test_schedule_without_endpoint_fails(self, invoke, config):
        config.api_endpoint = None

        result = invoke(["schedule"])

        assert result.exit_code == 1

    def test_uninstall(self, invoke, response_factory):
        invoke(["schedule"])
        with patch("requests.Session.post", return_value=response_factory(200)):
            invoke(["update"])

        result = invoke(["uninstall", "--yes"])
        assert result.exit_code == 0

        info = invoke(["info"])
        assert "Never" in info.output
        assert "Not scheduled" in info.output

    def test_uninstall_cancelled(self, invoke):
        result = invoke(["uninstall"], input="n\n")

        assert "Cancelled" in result.output


@pytest.mark.cli
class TestCliMisc:
    """Test 'version' and 'init-config'."""

    def test_version(self, invoke):
        from support_monitor import __version__

        result = invoke(["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_config_writes_loadable_file(self, invoke, tmp_path):
        path = tmp_path / "out" / "support-monitor.yaml"

        result = invoke(["init-config", str(path)])

        assert result.exit_code == 0
        config = Config.from_file(path)
        assert config.api_endpoint == "https://support.example.com/api/report"
        assert config.schedule_interval_hours == 12
