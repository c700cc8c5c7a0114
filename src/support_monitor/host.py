"""
Host data sources for Support Monitor.

The monitor never inspects a site's code directly. It asks a HostEnvironment
for the installed core version, the installed add-ons and the host's cached
update-check results. ManifestHost reads all of that from a YAML manifest
the host site exports, optionally running a refresh command first.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

REFRESH_TIMEOUT = 60


def run_command(
    cmd: list[str],
    timeout: int = 30,
    check: bool = False,
) -> tuple[str, str, int]:
    """
    Run a shell command and return output.

    Args:
        cmd: Command and arguments as list.
        timeout: Timeout in seconds.
        check: If True, raise on non-zero exit.

    Returns:
        Tuple of (stdout, stderr, returncode).
    """
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=check,
        )
        return result.stdout, result.stderr, result.returncode
    except subprocess.TimeoutExpired:
        logger.warning(f"Command timed out: {' '.join(cmd)}")
        return "", "Command timed out", -1
    except FileNotFoundError:
        logger.warning(f"Command not found: {cmd[0]}")
        return "", f"Command not found: {cmd[0]}", -1
    except subprocess.CalledProcessError as e:
        return e.stdout or "", e.stderr or "", e.returncode


class HostEnvironment(ABC):
    """
    Abstract view of the site being monitored.

    Add-on mappings are keyed by the add-on's file path relative to its
    install directory (e.g. "akismet/akismet.php"); values are the add-on's
    own declared metadata (name, version, uri, optionally slug).
    """

    @abstractmethod
    def site_url(self) -> str | None:
        """Public URL of the site."""

    @abstractmethod
    def core_version(self) -> str | None:
        """Installed core version string."""

    @abstractmethod
    def core_updates(self) -> list[dict[str, Any]]:
        """Cached core update offers, most recommended first."""

    @abstractmethod
    def plugins(self) -> dict[str, dict[str, Any]]:
        """Ordinary plugins."""

    @abstractmethod
    def mu_plugins(self) -> dict[str, dict[str, Any]]:
        """Must-use plugins."""

    @abstractmethod
    def dropins(self) -> dict[str, dict[str, Any]]:
        """Drop-ins."""

    @abstractmethod
    def plugin_updates(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Cached plugin update check: {"response": {...}, "no_update": {...}}."""

    @abstractmethod
    def is_active(self, plugin_file: str) -> bool:
        """Whether a plugin is active for the current site."""

    @abstractmethod
    def is_active_for_network(self, plugin_file: str) -> bool:
        """Whether a plugin is active network-wide."""

    def refresh(self) -> None:
        """Refresh the host's update-check cache. No-op by default."""
        return None


class ManifestHost(HostEnvironment):
    """
    Host environment backed by a YAML manifest exported by the site.

    Example manifest::

        site_url: https://example.org
        core:
          version: 6.4.2
          updates:
            - version: 6.5.0
        plugins:
          akismet/akismet.php: {name: Akismet, version: "5.2"}
        mu_plugins: {}
        dropins: {}
        active_plugins: [akismet/akismet.php]
        network_active_plugins: []
        plugin_updates:
          response:
            akismet/akismet.php: {slug: akismet, new_version: "5.3"}
          no_update: {}
    """

    def __init__(self, manifest_path: str | Path, refresh_command: str | None = None):
        self.manifest_path = Path(manifest_path)
        self.refresh_command = refresh_command
        self._data: dict[str, Any] | None = None

    @property
    def data(self) -> dict[str, Any]:
        if self._data is None:
            self._data = self._load()
        return self._data

    def _load(self) -> dict[str, Any]:
        try:
            with open(self.manifest_path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            logger.warning(f"Could not read site manifest {self.manifest_path}: {e}")
            return {}
        except yaml.YAMLError as e:
            logger.warning(f"Invalid site manifest {self.manifest_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Site manifest {self.manifest_path} is not a mapping")
            return {}
        return data

    def _section(self, key: str) -> dict[str, Any]:
        value = self.data.get(key)
        return value if isinstance(value, dict) else {}

    def _addons(self, key: str) -> dict[str, dict[str, Any]]:
        return {
            str(name): dict(meta) if isinstance(meta, dict) else {}
            for name, meta in self._section(key).items()
        }

    def refresh(self) -> None:
        """Run the configured update-check command, then reload the manifest."""
        if self.refresh_command:
            logger.debug(f"Refreshing update check: {self.refresh_command}")
            _, stderr, code = run_command(
                shlex.split(self.refresh_command), timeout=REFRESH_TIMEOUT
            )
            if code != 0:
                logger.warning(f"Update check refresh exited with {code}: {stderr.strip()}")
        self._data = None

    def site_url(self) -> str | None:
        url = self.data.get("site_url")
        return str(url) if url else None

    def core_version(self) -> str | None:
        version = self._section("core").get("version")
        return str(version) if version is not None else None

    def core_updates(self) -> list[dict[str, Any]]:
        updates = self._section("core").get("updates") or []
        return [u for u in updates if isinstance(u, dict)]

    def plugins(self) -> dict[str, dict[str, Any]]:
        return self._addons("plugins")

    def mu_plugins(self) -> dict[str, dict[str, Any]]:
        return self._addons("mu_plugins")

    def dropins(self) -> dict[str, dict[str, Any]]:
        return self._addons("dropins")

    def plugin_updates(self) -> dict[str, dict[str, dict[str, Any]]]:
        updates = self._section("plugin_updates")
        return {
            "response": updates.get("response") or {},
            "no_update": updates.get("no_update") or {},
        }

    def is_active(self, plugin_file: str) -> bool:
        return plugin_file in (self.data.get("active_plugins") or [])

    def is_active_for_network(self, plugin_file: str) -> bool:
        return plugin_file in (self.data.get("network_active_plugins") or [])
