"""
Domain models for the url watcher.

This module defines the core data structures that flow through the polling
engine: the watched targets, the per-request timing marks collected by the
HTTP client, and the result of a single probe.
"""

from datetime import timedelta
from typing import NamedTuple, Optional

ZERO = timedelta(0)


class Target(NamedTuple):
    """
    A single URL to poll on a fixed cadence.

    The URL is the unique key of a target. Targets are immutable once
    registered with the orchestrator.

    Attributes:
        url: The URL that is checked for liveness.
        interval: How long to wait between two consecutive probes.
        timeout: How long a single probe may take before it is abandoned.
    """

    url: str
    interval: timedelta
    timeout: timedelta


class ProbeResult(NamedTuple):
    """
    The outcome of one completed probe.

    A status code of 0 means the probe did not complete before its timeout;
    in that case every duration is zero.

    Attributes:
        url: The URL that was probed.
        status_code: The HTTP status code received, or 0 on timeout.
        duration: Wall-clock span from request start to response headers.
        dns: Time spent resolving the host name.
        tls: Time spent establishing the secure transport. On https URLs the
            client opens TCP and negotiates TLS in one step, so this is the
            whole connection setup after name resolution; zero on http.
        connect: Time spent opening the connection after name resolution.
            On https it includes the TLS handshake and equals tls, so the two
            spans overlap and must not be added up.
    """

    url: str
    status_code: int
    duration: timedelta = ZERO
    dns: timedelta = ZERO
    tls: timedelta = ZERO
    connect: timedelta = ZERO

    @property
    def duration_ms(self) -> int:
        """Total duration truncated to whole milliseconds."""
        return self.duration // timedelta(milliseconds=1)

    @property
    def timed_out(self) -> bool:
        return self.status_code == 0


class RequestTrace:
    """
    Mutable timing marks for a single HTTP request.

    An instance is handed to aiohttp as the ``trace_request_ctx`` of a request
    and filled in by the trace hooks. Marks are event-loop timestamps in
    seconds; a phase that never happened (cached DNS, reused connection) keeps
    its marks unset and reports a zero span.
    """

    def __init__(self) -> None:
        self.dns_start: Optional[float] = None
        self.dns_end: Optional[float] = None
        self.connection_start: Optional[float] = None
        self.connection_end: Optional[float] = None

    @staticmethod
    def _span(start: Optional[float], end: Optional[float]) -> timedelta:
        if start is None or end is None or end < start:
            return ZERO
        return timedelta(seconds=end - start)

    @property
    def dns(self) -> timedelta:
        return self._span(self.dns_start, self.dns_end)

    @property
    def connection(self) -> timedelta:
        """Full transport establishment span, including name resolution."""
        return self._span(self.connection_start, self.connection_end)

    @property
    def connect(self) -> timedelta:
        """Transport establishment span without the name resolution."""
        return max(self.connection - self.dns, ZERO)
