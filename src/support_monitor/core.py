"""
Core orchestration module for Support Monitor.

The Monitor is the service object the entry points build once at startup
and pass around: it wires the host, compiler, uploader, run state and
scheduler together and implements the report -> deliver -> record flow.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from datetime import datetime
from typing import Callable

from support_monitor.config import Config
from support_monitor.errors import InvalidEndpoint, NoData, SchedulingFailed
from support_monitor.host import HostEnvironment, ManifestHost
from support_monitor.inventory import InventoryCollector
from support_monitor.models import Report
from support_monitor.report import ReportCompiler
from support_monitor.scheduler import Scheduler
from support_monitor.state import OptionStore, RunState, RunStateStore
from support_monitor.uploader import DeliveryResult, Uploader

logger = logging.getLogger(__name__)


class Monitor:
    """
    Reporting service for one site.

    Construction has no side effects. Entry points call `configure()` and
    then `evaluate_catch_up()` explicitly.
    """

    def __init__(
        self,
        config: Config | None = None,
        host: HostEnvironment | None = None,
        store: RunStateStore | None = None,
        uploader: Uploader | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or Config()
        self.host = host or ManifestHost(self.config.manifest_path, self.config.refresh_command)
        self.runs = store or RunStateStore(OptionStore(self.config.state_dir))
        self.uploader = uploader or Uploader(self.config)
        self.compiler = ReportCompiler(InventoryCollector(self.host), clock=clock)
        self.scheduler = scheduler or Scheduler(
            self.runs.options,
            self.runs,
            self._periodic_post,
            interval_hours=self.config.schedule_interval_hours,
            catch_up_hours=self.config.catch_up_hours,
        )

        self._endpoint: str | None = None
        self._secret: str | None = None
        self._identity: str | None = None
        self._configured = False

    def configure(self) -> Monitor:
        """Resolve endpoint, secret and site identity from config and host."""
        self._endpoint = self.config.api_endpoint
        self._secret = self.config.secret
        self._identity = (
            self.config.site_url or self.host.site_url() or f"https://{socket.getfqdn()}"
        )
        self._configured = True

        if not self._endpoint:
            logger.warning("No API endpoint configured; reports will not be sent")
        logger.debug(f"Configured monitor for {self._identity} -> {self._endpoint}")
        return self

    def _ensure_configured(self) -> None:
        if not self._configured:
            self.configure()

    @property
    def api_endpoint(self) -> str | None:
        self._ensure_configured()
        return self._endpoint

    @property
    def api_secret(self) -> str:
        self._ensure_configured()
        return self._secret or ""

    @property
    def identity(self) -> str:
        self._ensure_configured()
        return self._identity or ""

    def get_last_run(self) -> RunState | None:
        return self.runs.load()

    def next_scheduled(self) -> datetime | None:
        return self.scheduler.next_scheduled()

    def compile(self) -> Report:
        """Compile a fresh signed report without sending it."""
        return self.compiler.compile(self.api_secret, self.identity)

    def post(self, blocking: bool = False) -> DeliveryResult:
        """
        Compile a report, deliver it and record the outcome.

        Args:
            blocking: Wait for the server response.

        Returns:
            DeliveryResult of the attempt.

        Raises:
            NoData: If there was nothing to report.
        """
        report = self.compile()
        result = self.uploader.deliver(self.api_endpoint, report, blocking=blocking)

        # Nothing was sent, so there is no attempt to record
        if isinstance(result.error, InvalidEndpoint):
            return result

        try:
            self.runs.save(RunState.from_result(report, result))
        except OSError as e:
            logger.error(f"Could not record last run: {e}")

        return result

    def _periodic_post(self) -> None:
        result = self.post(blocking=True)
        if result.error is not None:
            logger.error(f"Scheduled report failed: {result.error}")

    def evaluate_catch_up(self, now: datetime | None = None) -> bool:
        """
        Fire one non-blocking report if the last run is missing or stale.

        Returns:
            True if a catch-up report was dispatched.
        """
        if not self.api_endpoint:
            return False
        if not self.scheduler.needs_catch_up(now):
            return False

        logger.info("Last run missing or stale; sending catch-up report")
        try:
            result = self.post(blocking=False)
        except NoData as e:
            logger.warning(str(e))
            return False
        return result.error is None

    def schedule(self) -> bool:
        if not self.api_endpoint:
            raise SchedulingFailed("No API endpoint configured")
        return self.scheduler.schedule()

    def unschedule(self) -> bool:
        return self.scheduler.unschedule()

    def serve(self, stop_event: threading.Event, poll_seconds: float = 60) -> None:
        """Run as a long-lived agent until stop_event is set."""
        self._ensure_configured()
        if self.scheduler.restore():
            logger.info(f"Next report at {self.next_scheduled()}")
        else:
            logger.warning("Periodic report is not scheduled; only catch-up runs will fire")
        self.evaluate_catch_up()
        self.scheduler.run_forever(stop_event, poll_seconds)
        self.uploader.wait()

    def uninstall(self) -> None:
        """Remove the periodic job and delete all recorded run state."""
        self.unschedule()
        self.runs.clear()
