"""
Core version collector.
"""

from __future__ import annotations

import re

from support_monitor.collectors.base import BaseCollector
from support_monitor.models import CoreFacts

_SRC_SUFFIX = re.compile(r"-src$")


class CoreCollector(BaseCollector):
    """Collects the installed and recommended core versions."""

    name = "core"
    description = "Installed core version and recommended update"

    def collect(self) -> CoreFacts:
        current = self.host.core_version()
        if current:
            # Development checkouts report e.g. "6.5-src"
            current = _SRC_SUFFIX.sub("", current)

        recommended = None
        updates = self.host.core_updates()
        if updates and updates[0].get("version"):
            recommended = str(updates[0]["version"])

        return CoreFacts(current=current or None, recommended=recommended)

    def empty(self) -> CoreFacts:
        return CoreFacts()
