"""
Gauge state of the url watcher.

The liveness and latency gauges live in their own CollectorRegistry owned by
a UrlGauges instance instead of the process-wide default registry. The result
sink is the only writer; the exposition server only renders the registry.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Gauge, generate_latest

# Module logger
logger = logging.getLogger(__name__)

UP_METRIC = "sample_external_url_up"
RESPONSE_MS_METRIC = "sample_external_url_response_ms"


class UrlGauges:
    """
    Liveness and latency gauges keyed by target URL.

    Both values for a URL are written back to back without yielding to the
    event loop, so a scrape never observes one gauge updated and the other not.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """
        Creates the gauges.

        Args:
            registry: Registry to register the gauges with. A fresh registry is
                created when omitted, so several instances never collide.
        """
        self._registry: CollectorRegistry = registry if registry is not None else CollectorRegistry()
        self._up = Gauge(
            UP_METRIC,
            "binary indication of url liveness",
            ["url"],
            registry=self._registry,
        )
        self._response_ms = Gauge(
            RESPONSE_MS_METRIC,
            "response time in ms for last check",
            ["url"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def update(self, url: str, up: bool, response_ms: int) -> None:
        """
        Records the latest probe outcome of a URL.

        The latency is always a whole number of milliseconds. prometheus_client
        stores gauge values as floats, so it is rendered as e.g. ``87.0``.

        Args:
            url: The URL the values belong to.
            up: Whether the URL answered with HTTP 200.
            response_ms: Duration of the probe in whole milliseconds.
        """
        self._up.labels(url=url).set(1 if up else 0)
        self._response_ms.labels(url=url).set(response_ms)

    def up(self, url: str) -> Optional[float]:
        """Current liveness value of a URL, or None if it was never probed."""
        return self._registry.get_sample_value(UP_METRIC, {"url": url})

    def response_ms(self, url: str) -> Optional[float]:
        """Current latency value of a URL, or None if it was never probed."""
        return self._registry.get_sample_value(RESPONSE_MS_METRIC, {"url": url})

    def render(self) -> bytes:
        """Renders all gauges in the Prometheus text exposition format."""
        return generate_latest(self._registry)
