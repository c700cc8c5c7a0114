"""
Report compilation.

Turns an inventory into a signed Report. Every call collects afresh and
signs afresh; nothing is cached between reports.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Callable, Iterable

from support_monitor.errors import NoData
from support_monitor.inventory import InventoryCollector
from support_monitor.models import AddonRecord, Report

logger = logging.getLogger(__name__)


def sign(identity: str, secret: str, timestamp: int) -> str:
    """SHA-256 digest binding the site identity, shared secret and report time."""
    payload = f"{identity}{secret}{timestamp}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def dedupe_addons(addons: Iterable[AddonRecord]) -> tuple[AddonRecord, ...]:
    """
    Drop duplicate slugs, last record wins.

    The surviving record takes the position of the first record with that slug.
    """
    by_slug: dict[str, AddonRecord] = {}
    for addon in addons:
        if addon.slug in by_slug:
            logger.warning(
                f"Duplicate add-on slug '{addon.slug}': "
                f"{by_slug[addon.slug].kind.value} replaced by {addon.kind.value}"
            )
        by_slug[addon.slug] = addon
    return tuple(by_slug.values())


class ReportCompiler:
    """Assembles complete report envelopes from collected inventory."""

    def __init__(
        self,
        collector: InventoryCollector,
        clock: Callable[[], float] = time.time,
    ):
        self.collector = collector
        self.clock = clock

    def compile(self, secret: str, identity: str) -> Report:
        """
        Collect inventory and wrap it in a signed report.

        Raises:
            NoData: If neither a core version nor any add-ons were found.
        """
        inventory = self.collector.collect()
        if inventory.is_empty():
            raise NoData("No data to post: host reported no core version and no add-ons")

        timestamp = int(self.clock())
        report = Report(
            identity=identity,
            timestamp=timestamp,
            signature=sign(identity, secret, timestamp),
            core=inventory.core,
            addons=dedupe_addons(inventory.addons),
        )
        logger.debug(f"Compiled report for {identity} with {len(report.addons)} add-ons")
        return report
