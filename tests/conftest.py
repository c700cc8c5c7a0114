"""
Pytest fixtures and configuration for Support Monitor tests.

Provides a sample site manifest, configuration pointing at temporary state,
and HTTP response mocking across the test suite.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import yaml

from support_monitor.config import Config
from support_monitor.models import AddonKind, AddonRecord, CoreFacts, Report
from support_monitor.state import OptionStore, RunStateStore
from support_monitor.uploader import Uploader

PUBLIC_ADDRESS = "93.184.216.34"


# Host data fixtures
@pytest.fixture
def manifest_data():
    """Manifest for a site with one update pending on each kind of add-on."""
    return {
        "site_url": "https://example.org",
        "core": {
            "version": "6.4.2-src",
            "updates": [{"version": "6.5.0"}, {"version": "6.4.3"}],
        },
        "plugins": {
            "akismet/akismet.php": {"name": "Akismet", "version": "5.2", "uri": "https://akismet.com"},
            "hello.php": {"name": "Hello Dolly", "version": "1.7.2"},
            "network-tool/network-tool.php": {"name": "Network Tool", "version": "2.0.0"},
        },
        "mu_plugins": {
            "loader.php": {"name": "MU Loader", "version": "1.0"},
        },
        "dropins": {
            "object-cache.php": {"name": "Object Cache", "version": "2.1.0"},
        },
        "active_plugins": ["akismet/akismet.php"],
        "network_active_plugins": ["network-tool/network-tool.php"],
        "plugin_updates": {
            "response": {
                "akismet/akismet.php": {"slug": "akismet", "new_version": "5.3", "version": "9.9"},
            },
            "no_update": {
                "hello.php": {"slug": "hello-dolly", "new_version": "1.7.2"},
            },
        },
    }


@pytest.fixture
def manifest_file(tmp_path, manifest_data):
    """Write the sample manifest to a temporary file."""
    path = tmp_path / "site.yaml"
    path.write_text(yaml.safe_dump(manifest_data))
    return path


@pytest.fixture
def config(tmp_path, manifest_file):
    """Config with a public endpoint and temporary state directory."""
    return Config(
        api_endpoint="https://support.example.com/api/report",
        api_secret="s3cret",
        manifest_path=str(manifest_file),
        state_dir=str(tmp_path / "state"),
        site_url="https://example.org",
    )


@pytest.fixture
def public_resolver():
    """Resolver that maps every host name to a public address."""
    return lambda host: [PUBLIC_ADDRESS]


@pytest.fixture
def uploader(config, public_resolver):
    return Uploader(config, resolver=public_resolver)


@pytest.fixture
def run_store(config):
    return RunStateStore(OptionStore(config.state_dir))


@pytest.fixture
def sample_report():
    """Small signed report."""
    return Report(
        identity="https://example.org",
        timestamp=1700000000,
        signature="a" * 64,
        core=CoreFacts(current="6.4.2", recommended="6.5.0"),
        addons=(
            AddonRecord(
                slug="akismet",
                display_name="Akismet",
                kind=AddonKind.PLUGIN,
                current_version="5.2",
                recommended_version="5.3",
                active=True,
            ),
            AddonRecord(
                slug="object-cache.php",
                display_name="Object Cache",
                kind=AddonKind.DROPIN,
                current_version="2.1.0",
            ),
        ),
    )


# HTTP response fixtures
def make_response(status_code: int, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.ok = 200 <= status_code < 400
    return response


@pytest.fixture
def response_factory():
    return make_response
