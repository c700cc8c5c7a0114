"""
Persistent state for Support Monitor.

A small JSON option store holds the last-run record and the periodic
schedule registration, each under a fixed key, so that separate processes
(the daemon, cron-driven runs, the CLI) see the same state.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from support_monitor.models import Report
from support_monitor.uploader import DeliveryResult, Outcome

logger = logging.getLogger(__name__)

LAST_RUN_KEY = "support_monitor_last_run"

OPTIONS_FILE = "options.json"


class OptionStore:
    """
    Key-value store persisted as a single JSON file.

    Reads always go to disk. Writes replace the file atomically and keep it
    readable only by the owner.
    """

    def __init__(self, state_dir: str | Path):
        self.path = Path(state_dir) / OPTIONS_FILE

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Invalid or unreadable option store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".options-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def update(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> bool:
        """Remove a key. Returns False if it was not present."""
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True


@dataclass
class RunState:
    """Record of the last completed delivery attempt."""

    timestamp: str
    outcome: Outcome
    report: Report | None = None
    status_code: int | None = None
    body: str | None = None
    error: str | None = None

    def completed_at(self) -> datetime | None:
        """When the attempt completed, or None if the timestamp can't be parsed."""
        if not self.timestamp:
            return None
        try:
            when = datetime.fromisoformat(self.timestamp)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return when

    @classmethod
    def from_result(
        cls,
        report: Report,
        result: DeliveryResult,
        now: datetime | None = None,
    ) -> RunState:
        now = now or datetime.now(timezone.utc)
        return cls(
            timestamp=now.isoformat(),
            outcome=result.outcome,
            report=report,
            status_code=result.status_code,
            body=result.body,
            error=str(result.error) if result.error else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "outcome": self.outcome.value,
            "status_code": self.status_code,
            "body": self.body,
            "error": self.error,
            "report": self.report.to_dict() if self.report else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunState:
        report = None
        if data.get("report"):
            try:
                report = Report.from_dict(data["report"])
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Discarding unreadable report in last run record: {e}")

        try:
            outcome = Outcome(data.get("outcome"))
        except ValueError:
            outcome = Outcome.UNKNOWN

        return cls(
            timestamp=str(data.get("timestamp") or ""),
            outcome=outcome,
            report=report,
            status_code=data.get("status_code"),
            body=data.get("body"),
            error=data.get("error"),
        )


class RunStateStore:
    """Loads and saves the last-run record."""

    def __init__(self, options: OptionStore):
        self.options = options

    def load(self) -> RunState | None:
        data = self.options.get(LAST_RUN_KEY)
        if not isinstance(data, dict):
            return None
        return RunState.from_dict(data)

    def save(self, state: RunState) -> None:
        self.options.update(LAST_RUN_KEY, state.to_dict())

    def clear(self) -> None:
        if self.options.delete(LAST_RUN_KEY):
            logger.info("Deleted last run record")
