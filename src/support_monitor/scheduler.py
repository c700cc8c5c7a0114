"""
Scheduling for Support Monitor.

Two triggers lead to a report:

- the periodic job, registered with the `schedule` library and recorded in
  the option store so other processes know it is enabled;
- the catch-up check, which asks for an immediate run when the last run is
  missing or too old (the periodic job is probably disabled or failing).
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import schedule

from support_monitor.errors import SchedulingFailed
from support_monitor.state import OptionStore, RunStateStore

logger = logging.getLogger(__name__)

EVENT = "support_monitor"
SCHEDULE_KEY = "support_monitor_schedule"


class Scheduler:
    """
    Decides when reports run.

    Each Scheduler owns its own `schedule.Scheduler` registry, so nothing is
    shared through the library's module-level default scheduler.
    """

    def __init__(
        self,
        options: OptionStore,
        runs: RunStateStore,
        action: Callable[[], Any],
        interval_hours: int = 12,
        catch_up_hours: int = 12,
        registry: schedule.Scheduler | None = None,
    ):
        self.options = options
        self.runs = runs
        self.action = action
        self.interval_hours = interval_hours
        self.catch_up_hours = catch_up_hours
        self.registry = registry or schedule.Scheduler()

    def _job(self) -> schedule.Job | None:
        jobs = self.registry.get_jobs(EVENT)
        return jobs[0] if jobs else None

    def _registration(self) -> dict[str, Any] | None:
        record = self.options.get(SCHEDULE_KEY)
        return record if isinstance(record, dict) else None

    def is_scheduled(self) -> bool:
        """The persisted registration is authoritative across processes."""
        return self._registration() is not None

    def _register(self, interval_hours: int) -> schedule.Job:
        if interval_hours <= 0:
            raise SchedulingFailed(f"Invalid schedule interval: {interval_hours} hours")
        try:
            return self.registry.every(interval_hours).hours.do(self._fire).tag(EVENT)
        except schedule.ScheduleError as e:
            raise SchedulingFailed(f"Could not register periodic job: {e}") from e

    def schedule(self) -> bool:
        """
        Register the periodic job if it is not already registered.

        Returns:
            True when the job is (or already was) scheduled.

        Raises:
            SchedulingFailed: If the job could not be registered or recorded.
        """
        if self.is_scheduled():
            logger.debug("Periodic job already scheduled")
            return True

        # Left over from a registration another process removed
        self.registry.clear(EVENT)
        job = self._register(self.interval_hours)
        try:
            self.options.update(
                SCHEDULE_KEY,
                {
                    "interval_hours": self.interval_hours,
                    "next_run": job.next_run.isoformat() if job.next_run else None,
                },
            )
        except OSError as e:
            self.registry.clear(EVENT)
            raise SchedulingFailed(f"Could not record schedule: {e}") from e

        logger.info(f"Scheduled report every {self.interval_hours} hours")
        return True

    def unschedule(self) -> bool:
        """
        Remove the periodic job. Unscheduling an absent job is a no-op.

        Raises:
            SchedulingFailed: If the registration could not be removed.
        """
        self.registry.clear(EVENT)
        try:
            removed = self.options.delete(SCHEDULE_KEY)
        except OSError as e:
            raise SchedulingFailed(f"Could not remove schedule: {e}") from e

        if removed:
            logger.info("Unscheduled periodic report")
        return True

    def restore(self) -> bool:
        """Re-register the in-process job from a recorded registration."""
        if self._job() is not None:
            return True
        registration = self._registration()
        if registration is None:
            return False

        interval = int(registration.get("interval_hours") or self.interval_hours)
        self._register(interval)
        self._sync_next_run()
        logger.info(f"Restored periodic report every {interval} hours")
        return True

    def next_scheduled(self) -> datetime | None:
        registration = self._registration()
        if registration is None:
            return None

        job = self._job()
        if job is not None:
            return job.next_run

        if registration.get("next_run"):
            try:
                return datetime.fromisoformat(registration["next_run"])
            except (TypeError, ValueError):
                return None
        return None

    def _sync_next_run(self) -> None:
        job = self._job()
        registration = self._registration()
        if job is None or registration is None or job.next_run is None:
            return
        next_run = job.next_run.isoformat()
        if registration.get("next_run") != next_run:
            registration["next_run"] = next_run
            try:
                self.options.update(SCHEDULE_KEY, registration)
            except OSError as e:
                logger.warning(f"Could not record next run: {e}")

    def needs_catch_up(self, now: datetime | None = None) -> bool:
        """True if the last run is missing, unreadable or older than the catch-up window."""
        now = now or datetime.now(timezone.utc)
        last_run = self.runs.load()
        if last_run is None:
            logger.debug("No previous run recorded")
            return True

        completed = last_run.completed_at()
        if completed is None:
            logger.debug(f"Unparsable last run timestamp: {last_run.timestamp!r}")
            return True

        return now - completed > timedelta(hours=self.catch_up_hours)

    def _fire(self) -> None:
        logger.info("Periodic report triggered")
        try:
            self.action()
        except Exception:
            logger.exception("Periodic report failed")

    def _reconcile(self) -> None:
        """Follow schedule/unschedule calls made by other processes."""
        job = self._job()
        registration = self._registration()

        if registration is None and job is not None:
            self.registry.clear(EVENT)
            logger.info("Periodic report was unscheduled; dropping job")
        elif registration is not None and job is None:
            interval = int(registration.get("interval_hours") or self.interval_hours)
            try:
                self._register(interval)
            except SchedulingFailed as e:
                logger.error(str(e))
                return
            logger.info(f"Periodic report was scheduled; running every {interval} hours")

    def run_pending(self) -> None:
        self._reconcile()
        self.registry.run_pending()
        self._sync_next_run()

    def run_forever(self, stop_event: threading.Event, poll_seconds: float = 60) -> None:
        """Run due jobs until stop_event is set."""
        logger.debug("Scheduler loop started")
        while not stop_event.is_set():
            self.run_pending()
            stop_event.wait(timeout=poll_seconds)
        logger.debug("Scheduler loop stopped")
