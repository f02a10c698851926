"""
HTTP client configuration module for the url watcher.

This module creates the aiohttp client session shared by every probe. The
session carries the trace configuration that records the DNS and connection
phases of each request.
"""

import logging

import aiohttp

from url_watcher.config.watcher_context import WatcherContext
from url_watcher.prober.aiohttp_prober import create_trace_config

# Module logger
logger = logging.getLogger(__name__)


def get_http_session(context: WatcherContext) -> aiohttp.ClientSession:
    """
    Create the HTTP client session used by the probes.

    Using a shared session keeps connections alive between ticks, so phases
    that are not repeated (name resolution, connection setup) report a zero
    span on later probes.

    Args:
        context: Configuration context of the watcher.

    Returns:
        aiohttp.ClientSession: A session with request tracing enabled.
    """
    logger.debug(f"Creating http session for {len(context.urls)} targets")
    return aiohttp.ClientSession(trace_configs=[create_trace_config()])
