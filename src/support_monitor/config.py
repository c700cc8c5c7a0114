"""
Configuration management for Support Monitor.

Supports configuration via YAML files, environment variables, and programmatic access.
"""

from __future__ import annotations

import hashlib
import os
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATHS = [
    Path("/etc/support-monitor/config.yaml"),
    Path.home() / ".config" / "support-monitor" / "config.yaml",
    Path("support-monitor.yaml"),
]

ENV_PREFIX = "SUPPORT_MONITOR_"


def default_secret(hostname: str | None = None) -> str:
    """Hash the machine's host name into a secret to enter in the support backend."""
    name = hostname if hostname is not None else socket.gethostname()
    return hashlib.sha256(name.encode("utf-8")).hexdigest()


@dataclass
class Config:
    """
    Configuration container for Support Monitor.

    Priority (highest to lowest):
    1. Programmatic values passed to __init__
    2. Environment variables (prefixed with SUPPORT_MONITOR_)
    3. Config file values
    4. Default values
    """

    # Endpoint settings
    api_endpoint: str | None = None
    api_secret: str | None = None
    allow_loopback: bool = False

    # Host site
    site_url: str | None = None
    manifest_path: str = "/etc/support-monitor/site.yaml"
    refresh_command: str | None = None

    # Scheduling
    state_dir: str = "/var/lib/support-monitor"
    schedule_interval_hours: int = 12
    catch_up_hours: int = 12

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    def __post_init__(self) -> None:
        if self.api_endpoint:
            self.api_endpoint = self.api_endpoint.rstrip("/")

    @property
    def secret(self) -> str:
        """The configured secret, or a hash of the host name when unset."""
        return self.api_secret or default_secret()

    @classmethod
    def from_file(cls, path: str | Path) -> Config:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from a dictionary."""
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}

        # Flatten nested structure if present
        flat = {}
        for key, value in data.items():
            if isinstance(value, dict):
                for subkey, subvalue in value.items():
                    prefixed = f"{key}_{subkey}"
                    flat[prefixed if prefixed in known_fields else subkey] = subvalue
            else:
                flat[key] = value

        # Filter to only known fields
        filtered = {k: v for k, v in flat.items() if k in known_fields}

        return cls(**filtered)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """
        Load configuration with full resolution order.

        Args:
            config_path: Explicit path to config file. If None, searches
                        default locations.

        Returns:
            Fully resolved Config instance.
        """
        base_config: dict[str, Any] = {}

        # Find and load config file
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    base_config = yaml.safe_load(f) or {}
        else:
            for path in DEFAULT_CONFIG_PATHS:
                if path.exists():
                    with open(path) as f:
                        base_config = yaml.safe_load(f) or {}
                    break

        config = cls.from_dict(base_config) if base_config else cls()

        config._apply_env_overrides()

        return config

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "API_ENDPOINT": "api_endpoint",
            "API_SECRET": "api_secret",
            "ALLOW_LOOPBACK": "allow_loopback",
            "SITE_URL": "site_url",
            "MANIFEST": "manifest_path",
            "REFRESH_COMMAND": "refresh_command",
            "STATE_DIR": "state_dir",
            "INTERVAL_HOURS": "schedule_interval_hours",
            "CATCH_UP_HOURS": "catch_up_hours",
            "LOG_LEVEL": "log_level",
            "LOG_FILE": "log_file",
        }

        for suffix, attr in env_mappings.items():
            value = os.environ.get(ENV_PREFIX + suffix)
            if value is None:
                continue
            # Type coercion
            current = getattr(self, attr)
            if isinstance(current, bool):
                setattr(self, attr, value.lower() in ("true", "1", "yes"))
            elif isinstance(current, int):
                setattr(self, attr, int(value))
            else:
                setattr(self, attr, value)

        if self.api_endpoint:
            self.api_endpoint = self.api_endpoint.rstrip("/")

    def to_dict(self, mask_secret: bool = True) -> dict[str, Any]:
        """Convert config to dictionary."""
        secret = self.api_secret
        if mask_secret and secret:
            secret = "***"

        return {
            "api": {
                "endpoint": self.api_endpoint,
                "secret": secret,
                "allow_loopback": self.allow_loopback,
            },
            "site": {
                "url": self.site_url,
            },
            "manifest_path": self.manifest_path,
            "refresh_command": self.refresh_command,
            "state_dir": self.state_dir,
            "schedule": {
                "interval_hours": self.schedule_interval_hours,
            },
            "catch_up_hours": self.catch_up_hours,
            "log": {
                "level": self.log_level,
                "file": self.log_file,
            },
        }

    def save(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(mask_secret=False), f, default_flow_style=False, sort_keys=False)
