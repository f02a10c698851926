"""
HTTP prober implementation using the aiohttp library.

This module provides the TargetProber used in production. Request phases are
timed through aiohttp's client tracing hooks: every request gets its own
RequestTrace, passed as ``trace_request_ctx``, which the hooks fill in.
"""

import asyncio
import logging
from datetime import timedelta
from types import SimpleNamespace
from typing import Any, Optional
from urllib.parse import urlsplit

import aiohttp

from url_watcher.contracts import TargetProber
from url_watcher.domain import ZERO, ProbeResult, RequestTrace, Target
from url_watcher.exceptions import ProbeError

# Module logger
logger = logging.getLogger(__name__)


def _request_trace(trace_config_ctx: SimpleNamespace) -> Optional[RequestTrace]:
    trace = getattr(trace_config_ctx, "trace_request_ctx", None)
    return trace if isinstance(trace, RequestTrace) else None


def _now() -> float:
    return asyncio.get_running_loop().time()


async def _on_dns_resolvehost_start(
    session: aiohttp.ClientSession, trace_config_ctx: SimpleNamespace, params: Any
) -> None:
    trace = _request_trace(trace_config_ctx)
    if trace is not None:
        trace.dns_start = _now()


async def _on_dns_resolvehost_end(
    session: aiohttp.ClientSession, trace_config_ctx: SimpleNamespace, params: Any
) -> None:
    trace = _request_trace(trace_config_ctx)
    if trace is not None:
        trace.dns_end = _now()


async def _on_connection_create_start(
    session: aiohttp.ClientSession, trace_config_ctx: SimpleNamespace, params: Any
) -> None:
    trace = _request_trace(trace_config_ctx)
    if trace is not None:
        trace.connection_start = _now()


async def _on_connection_create_end(
    session: aiohttp.ClientSession, trace_config_ctx: SimpleNamespace, params: Any
) -> None:
    trace = _request_trace(trace_config_ctx)
    if trace is not None:
        trace.connection_end = _now()


def create_trace_config() -> aiohttp.TraceConfig:
    """
    Build the trace configuration that records request phases.

    Returns:
        aiohttp.TraceConfig: Hooks filling a RequestTrace passed as trace_request_ctx.
    """
    trace_config = aiohttp.TraceConfig()
    trace_config.on_dns_resolvehost_start.append(_on_dns_resolvehost_start)
    trace_config.on_dns_resolvehost_end.append(_on_dns_resolvehost_end)
    trace_config.on_connection_create_start.append(_on_connection_create_start)
    trace_config.on_connection_create_end.append(_on_connection_create_end)
    return trace_config


class AiohttpProber(TargetProber):
    """
    A TargetProber performing one GET per call on a shared aiohttp session.

    The response is released as soon as its headers are in: the total span
    runs from request start to headers received. Redirects are not followed,
    the first response is the answer.
    """

    def __init__(self, session: aiohttp.ClientSession) -> None:
        """
        Initializes the prober with a shared aiohttp ClientSession.

        Args:
            session: An open session, created with create_trace_config() among
                its trace configs for the DNS/TLS/connect spans to be recorded.
        """
        self._session: aiohttp.ClientSession = session

    async def probe(self, target: Target) -> ProbeResult:
        """
        Performs a GET on the target's URL bounded by the target's timeout.

        Args:
            target: The Target to check.

        Returns:
            ProbeResult: Status code and timings, or status code 0 with zero
                durations when the timeout elapsed first.

        Raises:
            ProbeError: On DNS failures, refused connections, TLS errors and
                any other transport failure.
        """
        trace = RequestTrace()
        timeout = aiohttp.ClientTimeout(total=target.timeout.total_seconds())
        loop = asyncio.get_running_loop()
        start = loop.time()

        try:
            async with self._session.get(
                target.url,
                timeout=timeout,
                allow_redirects=False,
                trace_request_ctx=trace,
            ) as response:
                end = loop.time()
                status_code: int = response.status
        except asyncio.TimeoutError:
            logger.info(f"{target.url} check exceeded timeout duration")
            return ProbeResult(url=target.url, status_code=0)
        except (aiohttp.ClientError, OSError) as err:
            raise ProbeError(target.url, f"{type(err).__name__}: {err}") from err

        # TLS runs inside the connection setup; it is not a separate span.
        tls = ZERO
        if urlsplit(target.url).scheme == "https":
            tls = trace.connect

        result = ProbeResult(
            url=target.url,
            status_code=status_code,
            duration=timedelta(seconds=end - start),
            dns=trace.dns,
            tls=tls,
            connect=trace.connect,
        )
        logger.debug(
            f"Checked {target.url}: status={status_code} total={result.duration_ms}ms "
            f"dns={result.dns.total_seconds() * 1000:.1f}ms "
            f"connect={result.connect.total_seconds() * 1000:.1f}ms "
            f"tls={result.tls.total_seconds() * 1000:.1f}ms"
        )
        return result
