"""
Version comparison helpers.

Classifies the gap between an installed version and an available one as a
major, minor or patch update (according to semver, at least).
"""

from __future__ import annotations

import re
from enum import Enum

_LEADING_DIGITS = re.compile(r"^\s*(\d+)")


class UpdateType(str, Enum):
    """Kind of update a candidate version represents."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"
    UNKNOWN = "unknown"


# Indexed by semver position
_UPDATE_TYPES = (UpdateType.MAJOR, UpdateType.MINOR, UpdateType.PATCH)


def _to_int(part: str) -> int:
    match = _LEADING_DIGITS.match(part)
    return int(match.group(1)) if match else 0


def parse_version(version: str | None) -> list[int]:
    """
    Split a version string into integer components.

    Non-numeric components coerce to 0; a component like "3-beta" keeps its
    leading digits.
    """
    if not version:
        return []
    return [_to_int(part) for part in str(version).strip().split(".")]


def pad_version(parts: str | list[int] | None, length: int = 3) -> list[int]:
    """Ensure a version has at least major.minor.patch components."""
    if parts is None or isinstance(parts, str):
        parts = parse_version(parts)
    parts = list(parts)
    while len(parts) < length:
        parts.append(0)
    return parts


def is_newer(current: str | None, candidate: str | None) -> bool:
    """Return True if candidate orders strictly after current."""
    left = parse_version(current)
    right = parse_version(candidate)
    width = max(len(left), len(right), 3)
    return pad_version(right, width) > pad_version(left, width)


def compare(current: str | None, candidate: str | None) -> UpdateType:
    """
    Classify the update from ``current`` to ``candidate``.

    Args:
        current: The installed version.
        candidate: The available version.

    Returns:
        UpdateType.NONE if candidate is missing or not newer, otherwise the
        most significant component that increased. UpdateType.UNKNOWN when
        candidate is newer only beyond the patch component (e.g. 1.2.3.4).
    """
    if not current or not candidate:
        return UpdateType.NONE

    if not is_newer(current, candidate):
        return UpdateType.NONE

    installed = pad_version(current)
    available = pad_version(candidate)

    for index, update_type in enumerate(_UPDATE_TYPES):
        if available[index] > installed[index]:
            return update_type

    return UpdateType.UNKNOWN
