"""
Base collector class that all collectors inherit from.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from support_monitor.host import HostEnvironment

logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """
    Abstract base class for all inventory collectors.

    Subclasses must implement `collect` to read their section of the
    inventory from the host, and `empty` to describe what that section
    looks like when nothing could be read.
    """

    name: str = "base"
    description: str = "Base collector"

    def __init__(self, host: HostEnvironment):
        self.host = host
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    @abstractmethod
    def collect(self) -> Any:
        """
        Collect and return this collector's section of the inventory.
        """
        pass

    @abstractmethod
    def empty(self) -> Any:
        """Value used in place of `collect()` output when collection fails."""
        pass
