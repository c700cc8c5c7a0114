"""
Inventory collectors for Support Monitor.

Each collector is responsible for one section of the report. Collectors are
run in registration order by the InventoryCollector.
"""

from __future__ import annotations

from support_monitor.collectors.addons import AddonsCollector
from support_monitor.collectors.base import BaseCollector
from support_monitor.collectors.core import CoreCollector

# Registry of all available collectors
COLLECTORS: dict[str, type[BaseCollector]] = {
    "core": CoreCollector,
    "addons": AddonsCollector,
}


def get_all_collectors() -> dict[str, type[BaseCollector]]:
    """Return all registered collectors."""
    return COLLECTORS.copy()


def get_collector(name: str) -> type[BaseCollector] | None:
    """Get a specific collector by name."""
    return COLLECTORS.get(name)


__all__ = [
    "BaseCollector",
    "CoreCollector",
    "AddonsCollector",
    "get_all_collectors",
    "get_collector",
    "COLLECTORS",
]
