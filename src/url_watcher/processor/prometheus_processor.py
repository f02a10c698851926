"""
Prometheus gauge processor for the url watcher.

This module turns each probe result into gauge updates: liveness is 1 only
for an HTTP 200 answer, latency is the total duration in milliseconds.
"""

import logging
from http import HTTPStatus

from url_watcher.contracts import ResultProcessor
from url_watcher.domain import ProbeResult
from url_watcher.metrics import UrlGauges

# Module logger
logger = logging.getLogger(__name__)


class PrometheusProcessor(ResultProcessor):
    """
    A ResultProcessor writing probe outcomes into UrlGauges.

    A timed out probe (status code 0) counts as down, exactly like any
    non-200 answer. Updates are applied immediately, nothing is buffered.
    """

    def __init__(self, gauges: UrlGauges) -> None:
        self._gauges: UrlGauges = gauges

    async def process(self, result: ProbeResult) -> None:
        up = result.status_code == HTTPStatus.OK
        self._gauges.update(result.url, up=up, response_ms=result.duration_ms)
        logger.debug(
            f"Gauges updated for {result.url}: up={int(up)} response_ms={result.duration_ms}"
        )

    async def flush(self) -> None:
        # Gauges are set in place, there is nothing to flush.
        pass
