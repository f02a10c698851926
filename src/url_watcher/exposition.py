"""
Metrics exposition endpoint of the url watcher.

This module serves the gauge state over HTTP with aiohttp's web server so a
Prometheus server can scrape it. The listener runs on the same event loop as
the polling engine and never blocks it.
"""

import logging
import socket
from typing import Optional

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST

from .config.constants import METRICS_PATH
from .exceptions import ExpositionError
from .metrics import UrlGauges

# Module logger
logger = logging.getLogger(__name__)


class MetricsServer:
    """
    Serves ``GET /metrics`` from a UrlGauges instance.

    The handler only renders the current gauge values, so a scrape succeeds
    as long as the listener is up, whatever state the probes are in.
    """

    def __init__(self, gauges: UrlGauges, host: str, port: int) -> None:
        """
        Initializes the server without binding anything.

        Args:
            gauges: The gauge state to expose.
            host: Interface to bind to.
            port: TCP port to bind to; 0 picks a free port.
        """
        self._gauges: UrlGauges = gauges
        self._host: str = host
        self._port: int = port
        self._runner: Optional[web.AppRunner] = None
        self._socket: Optional[socket.socket] = None

    @property
    def port(self) -> int:
        """The bound port once started, the configured one before."""
        if self._socket is not None:
            return self._socket.getsockname()[1]
        return self._port

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        return web.Response(
            body=self._gauges.render(),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    def _create_app(self) -> web.Application:
        app = web.Application()
        app.add_routes([web.get(METRICS_PATH, self._handle_metrics)])
        return app

    async def start(self) -> None:
        """
        Binds the listening socket and starts serving.

        Raises:
            ExpositionError: If the address cannot be bound.
        """
        if self._runner is not None:
            raise RuntimeError("Metrics server already started.")

        try:
            sock = socket.create_server((self._host, self._port))
        except OSError as err:
            raise ExpositionError(
                f"could not bind metrics endpoint to {self._host}:{self._port}: {err}"
            ) from err
        sock.setblocking(False)

        runner = web.AppRunner(self._create_app(), access_log=None)
        await runner.setup()
        try:
            await web.SockSite(runner, sock).start()
        except Exception:
            await runner.cleanup()
            sock.close()
            raise

        self._runner = runner
        self._socket = sock
        logger.info(f"Serving metrics on http://{self._host}:{self.port}{METRICS_PATH}")

    async def stop(self) -> None:
        """
        Stops accepting connections and lets in-flight scrapes complete.

        Safe to call when the server is not running.
        """
        if self._runner is None:
            return
        await self._runner.cleanup()
        if self._socket is not None:
            self._socket.close()
        self._runner = None
        self._socket = None
        logger.info("Metrics server stopped.")
