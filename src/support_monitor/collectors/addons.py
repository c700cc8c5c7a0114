"""
Add-on collector.

Gathers plugins, must-use plugins and drop-ins into one list, merging in
whatever the host's update check knows about each of them.
"""

from __future__ import annotations

import posixpath
from typing import Any

from support_monitor.collectors.base import BaseCollector
from support_monitor.models import AddonKind, AddonRecord


def slug_from_file(plugin_file: str) -> str:
    """Derive a slug from an add-on file: its directory, or the file itself at top level."""
    directory = posixpath.dirname(plugin_file)
    return directory if directory else plugin_file


def _mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def _optional_str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


class AddonsCollector(BaseCollector):
    """Collects installed add-ons with update availability and active status."""

    name = "addons"
    description = "Plugins, must-use plugins and drop-ins with available updates"

    def collect(self) -> list[AddonRecord]:
        updates = _mapping(self.host.plugin_updates())
        response = _mapping(updates.get("response"))
        no_update = _mapping(updates.get("no_update"))

        tagged: list[tuple[str, AddonKind, dict[str, Any]]] = []
        for kind, addons in (
            (AddonKind.PLUGIN, self.host.plugins()),
            (AddonKind.MU_PLUGIN, self.host.mu_plugins()),
            (AddonKind.DROPIN, self.host.dropins()),
        ):
            tagged.extend((plugin_file, kind, meta) for plugin_file, meta in addons.items())

        self.logger.debug(f"Found {len(tagged)} add-ons")

        records = []
        for plugin_file, kind, own in tagged:
            # Malformed update entries count as missing
            offered = _mapping(response.get(plugin_file))
            current = _mapping(no_update.get(plugin_file))

            # Update info first so the add-on's own metadata wins on collisions
            extra = offered or current
            meta = {**extra, **_mapping(own)}

            slug = _optional_str(meta.get("slug")) or slug_from_file(plugin_file)

            recommended = _optional_str(offered.get("new_version"))

            # Must-use plugins and drop-ins are always active
            active = kind is not AddonKind.PLUGIN or (
                self.host.is_active(plugin_file) or self.host.is_active_for_network(plugin_file)
            )

            records.append(
                AddonRecord(
                    slug=slug,
                    display_name=_optional_str(meta.get("name")) or slug,
                    kind=kind,
                    current_version=_optional_str(meta.get("version")),
                    recommended_version=recommended,
                    active=bool(active),
                )
            )

        return records

    def empty(self) -> list[AddonRecord]:
        return []
