"""
Report delivery for Support Monitor.

Posts compiled reports to the support endpoint, either waiting for the
response or dispatching in the background and moving on.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable
from urllib.parse import urlsplit

import requests

from support_monitor.errors import DeliveryFailed, InvalidEndpoint, MonitorError

if TYPE_CHECKING:
    from support_monitor.config import Config
    from support_monitor.models import Report

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30

ALLOWED_PORTS = (80, 443, 8080)


class Outcome(str, Enum):
    """Result of a delivery attempt as far as the caller could observe it."""

    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"


@dataclass
class DeliveryResult:
    """Result of a delivery operation."""

    outcome: Outcome
    status_code: int | None = None
    body: str | None = None
    error: MonitorError | None = None
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """True for confirmed deliveries and for fire-and-forget dispatches."""
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def resolve_host(host: str) -> list[str]:
    """Resolve a host name to every IPv4 and IPv6 address it has."""
    infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    # IPv6 link-local results carry a scope suffix, e.g. "fe80::1%eth0"
    return [str(info[4][0]).split("%")[0] for info in infos]


def _is_internal(address: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_reserved
        or address.is_unspecified
        or address.is_multicast
    )


def validate_endpoint(
    endpoint: str | None,
    allow_loopback: bool = False,
    resolver: Callable[[str], Iterable[str]] | None = None,
) -> str:
    """
    Check that an endpoint is a usable external http(s) URL.

    Unless allow_loopback is set, the host must resolve to a public address
    and any explicit port must be 80, 443 or 8080. A name resolving to several
    addresses is rejected if any of them is internal.

    Returns:
        The endpoint unchanged.

    Raises:
        InvalidEndpoint: If the URL is malformed or the host is not allowed.
    """
    if not endpoint:
        raise InvalidEndpoint(endpoint, "no endpoint configured")

    try:
        parts = urlsplit(endpoint)
        port = parts.port
    except ValueError as e:
        raise InvalidEndpoint(endpoint, str(e)) from e

    if parts.scheme not in ("http", "https"):
        raise InvalidEndpoint(endpoint, "scheme must be http or https")
    if not parts.hostname:
        raise InvalidEndpoint(endpoint, "missing host")
    if parts.username or parts.password:
        raise InvalidEndpoint(endpoint, "credentials are not allowed in the URL")

    if allow_loopback:
        return endpoint

    host = parts.hostname.lower()
    if host == "localhost" or host.endswith(".localhost"):
        raise InvalidEndpoint(endpoint, "loopback hosts are not allowed")

    try:
        addresses = [ipaddress.ip_address(host)]
    except ValueError:
        try:
            addresses = [ipaddress.ip_address(a) for a in (resolver or resolve_host)(host)]
        except (OSError, ValueError) as e:
            raise InvalidEndpoint(endpoint, f"could not resolve host: {e}") from e
        if not addresses:
            raise InvalidEndpoint(endpoint, "could not resolve host: no addresses")

    for address in addresses:
        if _is_internal(address):
            raise InvalidEndpoint(endpoint, f"host resolves to internal address {address}")

    if port is not None and port not in ALLOWED_PORTS:
        raise InvalidEndpoint(endpoint, f"port {port} is not allowed")

    return endpoint


class Uploader:
    """
    Handles delivering reports to the support server.

    Blocking deliveries report success only for 2xx responses. Non-blocking
    deliveries return immediately with an unknown outcome; the request
    finishes on a background thread, with its own session, that the
    interpreter waits for at exit.
    """

    def __init__(
        self,
        config: Config,
        resolver: Callable[[str], Iterable[str]] | None = None,
    ):
        self.config = config
        self.resolver = resolver
        self.session = self._new_session()
        self._pending: list[threading.Thread] = []

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "User-Agent": f"support-monitor/{self._get_version()}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )
        return session

    def deliver(
        self,
        endpoint: str | None,
        report: Report,
        blocking: bool = True,
    ) -> DeliveryResult:
        """
        Post a report to the endpoint.

        Args:
            endpoint: URL to post to.
            report: The compiled report.
            blocking: Wait for and evaluate the server response.

        Returns:
            DeliveryResult. Errors are carried in `error`, never raised.
        """
        try:
            url = validate_endpoint(endpoint, self.config.allow_loopback, self.resolver)
        except InvalidEndpoint as e:
            logger.error(str(e))
            return DeliveryResult(outcome=Outcome.FAILURE, error=e)

        data = report.to_json().encode("utf-8")
        logger.debug(f"Posting {len(data)} bytes to {url} (blocking={blocking})")

        if not blocking:
            thread = threading.Thread(
                target=self._post_in_background,
                args=(url, data),
                name="support-monitor-delivery",
            )
            thread.start()
            self._pending = [t for t in self._pending if t.is_alive()] + [thread]
            return DeliveryResult(outcome=Outcome.UNKNOWN)

        return self._post(url, data)

    def _post(
        self,
        url: str,
        data: bytes,
        session: requests.Session | None = None,
    ) -> DeliveryResult:
        start_time = time.perf_counter()

        try:
            response = (session or self.session).post(url, data=data, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.Timeout:
            logger.warning("Delivery timed out")
            return DeliveryResult(
                outcome=Outcome.FAILURE,
                error=DeliveryFailed("Request timed out"),
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"Delivery error: {e}")
            return DeliveryResult(
                outcome=Outcome.FAILURE,
                error=DeliveryFailed(f"Request error: {e}"),
            )

        duration = (time.perf_counter() - start_time) * 1000

        if 200 <= response.status_code < 300:
            logger.info(f"Delivery successful in {duration:.0f}ms (HTTP {response.status_code})")
            return DeliveryResult(
                outcome=Outcome.SUCCESS,
                status_code=response.status_code,
                body=response.text,
                duration_ms=duration,
            )

        message = f"HTTP {response.status_code}: {response.text[:200]}"
        logger.warning(f"Delivery failed: {message}")
        return DeliveryResult(
            outcome=Outcome.FAILURE,
            status_code=response.status_code,
            body=response.text,
            error=DeliveryFailed(message, response.status_code, response.text),
            duration_ms=duration,
        )

    def _post_in_background(self, url: str, data: bytes) -> None:
        with self._new_session() as session:
            result = self._post(url, data, session)
        if result.error is not None:
            logger.debug(f"Background delivery did not succeed: {result.error}")

    def wait(self, timeout: float | None = None) -> None:
        """Wait for background deliveries to finish."""
        for thread in self._pending:
            thread.join(timeout)
        self._pending = [t for t in self._pending if t.is_alive()]

    def _get_version(self) -> str:
        """Get support-monitor version."""
        try:
            from support_monitor import __version__

            return __version__
        except ImportError:
            return "unknown"
