"""
Report data model.

A Report is what gets posted to the support endpoint. It is immutable once
compiled; serialization goes through plain dictionaries so the same shape is
used on the wire, in the run state file and in CLI output.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from support_monitor.versions import UpdateType, compare


class AddonKind(str, Enum):
    """Installable unit types recognized by the host."""

    PLUGIN = "plugin"
    MU_PLUGIN = "mu-plugin"
    DROPIN = "drop-in"


@dataclass(frozen=True)
class CoreFacts:
    """Installed and recommended core versions."""

    current: str | None = None
    recommended: str | None = None

    @property
    def update(self) -> UpdateType:
        return compare(self.current, self.recommended)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "recommended": self.recommended,
            "update": self.update.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CoreFacts:
        data = data or {}
        return cls(current=data.get("current"), recommended=data.get("recommended"))


@dataclass(frozen=True)
class AddonRecord:
    """Version facts for one add-on. The slug is its identity."""

    slug: str
    display_name: str
    kind: AddonKind
    current_version: str | None = None
    recommended_version: str | None = None
    active: bool = True

    @property
    def update(self) -> UpdateType:
        return compare(self.current_version, self.recommended_version)

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "display_name": self.display_name,
            "kind": self.kind.value,
            "current_version": self.current_version,
            "recommended_version": self.recommended_version,
            "update": self.update.value,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AddonRecord:
        return cls(
            slug=data["slug"],
            display_name=data.get("display_name") or data["slug"],
            kind=AddonKind(data.get("kind", AddonKind.PLUGIN.value)),
            current_version=data.get("current_version"),
            recommended_version=data.get("recommended_version"),
            active=bool(data.get("active", True)),
        )


@dataclass(frozen=True)
class Inventory:
    """Raw collection output, before it is stamped and signed."""

    core: CoreFacts = field(default_factory=CoreFacts)
    addons: tuple[AddonRecord, ...] = ()

    def is_empty(self) -> bool:
        return not self.core.current and not self.addons


@dataclass(frozen=True)
class Report:
    """Complete signed report envelope."""

    identity: str
    timestamp: int
    signature: str
    core: CoreFacts = field(default_factory=CoreFacts)
    addons: tuple[AddonRecord, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary for serialization."""
        return {
            "identity": self.identity,
            "timestamp": self.timestamp,
            "signature": self.signature,
            "core": self.core.to_dict(),
            "addons": [addon.to_dict() for addon in self.addons],
        }

    def to_json(self, indent: int | None = None) -> str:
        """Serialize report to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Report:
        return cls(
            identity=data["identity"],
            timestamp=int(data["timestamp"]),
            signature=data["signature"],
            core=CoreFacts.from_dict(data.get("core")),
            addons=tuple(AddonRecord.from_dict(a) for a in data.get("addons") or []),
        )

    @classmethod
    def from_json(cls, payload: str) -> Report:
        return cls.from_dict(json.loads(payload))
