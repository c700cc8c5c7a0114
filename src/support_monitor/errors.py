"""
Error kinds raised by the reporting pipeline.
"""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for support monitor errors."""

    pass


class InvalidEndpoint(MonitorError):
    """Raised when the endpoint URL is malformed or points at a disallowed host."""

    def __init__(self, endpoint: str | None, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Invalid endpoint {endpoint!r}: {reason}")


class NoData(MonitorError):
    """Raised when compilation produced an empty report."""

    pass


class DeliveryFailed(MonitorError):
    """Raised when a blocking delivery did not get a 2xx response."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class SchedulingFailed(MonitorError):
    """Raised when the periodic job could not be registered or removed."""

    pass
