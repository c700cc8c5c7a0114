"""
Inventory collection.

Runs the registered collectors against a host and assembles their output.
Collection never fails as a whole: a collector that raises is logged and
its section falls back to an empty value.
"""

from __future__ import annotations

import logging
import time

from support_monitor.collectors import get_all_collectors
from support_monitor.collectors.base import BaseCollector
from support_monitor.host import HostEnvironment
from support_monitor.models import CoreFacts, Inventory

logger = logging.getLogger(__name__)


class InventoryCollector:
    """Gathers current core and add-on facts from a host environment."""

    def __init__(
        self,
        host: HostEnvironment,
        collectors: dict[str, type[BaseCollector]] | None = None,
    ):
        self.host = host
        self.collectors = collectors if collectors is not None else get_all_collectors()

    def collect(self) -> Inventory:
        # Make recommended versions current rather than left over from an older check
        try:
            self.host.refresh()
        except Exception as e:
            logger.warning(f"Update check refresh failed: {e}")

        results = {}
        for name, collector_cls in self.collectors.items():
            start = time.perf_counter()
            collector = collector_cls(self.host)
            try:
                results[name] = collector.collect()
                duration = (time.perf_counter() - start) * 1000
                logger.debug(f"Collector '{name}' completed in {duration:.2f}ms")
            except Exception as e:
                logger.error(f"Collector '{name}' failed: {e}")
                results[name] = collector.empty()

        return Inventory(
            core=results.get("core") or CoreFacts(),
            addons=tuple(results.get("addons") or ()),
        )
