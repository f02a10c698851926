"""
Orchestration of the url watcher.

This module provides the WatcherOrchestrator, which wires one TargetRunner per
URL, the ResultSink and the MetricsServer together, and coordinates their
shutdown so that no result is lost and no runner writes to a closed queue.
"""

import asyncio
import logging
from asyncio import Queue, Task
from typing import Any, Dict, List, Optional, Sequence

from .config.constants import DEFAULT_HOST, DEFAULT_QUEUE_SIZE
from .config.durations import parse_positive_duration
from .contracts import TargetProber
from .domain import Target
from .exceptions import ConfigurationError, SinkError
from .exposition import MetricsServer
from .metrics import UrlGauges
from .processor.prometheus_processor import PrometheusProcessor
from .runner import TargetRunner
from .sink import ResultSink


class WatcherOrchestrator:
    """
    Runs the polling engine: N runners, one sink, one metrics listener.

    All construction input is validated up front; an invalid configuration
    raises ConfigurationError before any task is started.

    Shutdown sequence, triggered by stop():
    1. every runner is told to stop
    2. once all runners have exited, the result queue is closed
    3. the sink drains the queue
    4. the metrics listener stops after in-flight scrapes complete

    A runner failing hard is logged and leaves the others running. The
    orchestrator finishes when every runner has finished, whatever the reason.
    """

    def __init__(
        self,
        urls: Sequence[str],
        interval: str,
        timeout: str,
        port: int,
        prober: TargetProber,
        host: str = DEFAULT_HOST,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        queue_size_monitoring_interval: float = 20,
    ) -> None:
        """
        Validates the configuration and builds all components.

        Args:
            urls: The URLs to watch. Must not be empty.
            interval: Poll interval shared by all targets, e.g. "30s".
            timeout: Per-probe timeout shared by all targets, e.g. "2s".
            port: TCP port of the metrics endpoint; 0 picks a free port.
            prober: Performs the individual checks.
            host: Interface of the metrics endpoint.
            queue_size: Capacity of the result queue.
            queue_size_monitoring_interval: Seconds between two queue size logs.

        Raises:
            ConfigurationError: On an empty URL list, invalid or non-positive
                durations, an invalid port or queue size.
        """
        self._logger: logging.Logger = logging.getLogger(__name__)

        self._interval = parse_positive_duration(interval, "poll interval")
        self._timeout = parse_positive_duration(timeout, "poll timeout")
        if not urls:
            raise ConfigurationError("must provide urls to watch")
        if not isinstance(port, int) or not 0 <= port <= 65535:
            raise ConfigurationError(f"invalid metrics port: {port}")
        if not isinstance(queue_size, int) or queue_size < 1:
            raise ConfigurationError("queue_size must be a positive integer.")
        if self._timeout >= self._interval:
            self._logger.warning(
                f"Poll timeout {timeout} is not shorter than the interval {interval}; "
                "slow targets will skip ticks."
            )

        self._prober: TargetProber = prober
        self._gauges: UrlGauges = UrlGauges()
        # The queue provides backpressure. Runners pause while it is full.
        self._results: "Queue[Any]" = Queue(maxsize=queue_size)
        self._sink: ResultSink = ResultSink(self._results, PrometheusProcessor(self._gauges))
        self._server: MetricsServer = MetricsServer(self._gauges, host, port)
        self._queue_size_monitoring_interval: float = queue_size_monitoring_interval

        self._runners: Dict[str, TargetRunner] = {}
        self._errors: Dict[str, BaseException] = {}
        self._runner_tasks: List[Task] = []
        self._sink_task: Optional[Task] = None
        self._monitor_task: Optional[Task] = None
        self._started: bool = False
        self._stop_requested: bool = False
        self._waited: bool = False

        for url in urls:
            self.add_target(url)

    @property
    def targets(self) -> List[Target]:
        return [runner.target for runner in self._runners.values()]

    @property
    def gauges(self) -> UrlGauges:
        return self._gauges

    @property
    def metrics_port(self) -> int:
        """Port of the metrics endpoint, the bound one once started."""
        return self._server.port

    def add_target(self, url: str) -> Optional[Target]:
        """
        Registers a URL to watch. Only allowed before start().

        Args:
            url: The URL; surrounding whitespace is ignored.

        Returns:
            Optional[Target]: The new target, or None if the URL was already registered.

        Raises:
            ConfigurationError: If the URL is blank.
            RuntimeError: If the orchestrator was already started.
        """
        if self._started:
            raise RuntimeError("Targets cannot be added once the orchestrator is started.")
        url = url.strip() if isinstance(url, str) else ""
        if not url:
            raise ConfigurationError("target url must not be blank")
        if url in self._runners:
            self._logger.warning(f"Ignoring duplicate target {url}")
            return None

        target = Target(url=url, interval=self._interval, timeout=self._timeout)
        self._runners[url] = TargetRunner(
            target, self._prober, self._results, on_finished=self._runner_finished
        )
        return target

    def _runner_finished(self, runner: TargetRunner, error: Optional[BaseException]) -> None:
        if error is not None:
            self._errors[runner.target.url] = error
            self._logger.error(f"Watcher for {runner.target.url} exited with error: {error}")
        remaining = sum(1 for task in self._runner_tasks if not task.done()) - 1
        self._logger.info(f"Watcher for {runner.target.url} finished, {max(remaining, 0)} still running.")

    async def _monitor_queue(self) -> None:
        """
        Logs the result queue size periodically.

        A queue that stays near its capacity means the sink is slower than the
        runners and every runner is being throttled.
        """
        while True:
            try:
                await asyncio.sleep(self._queue_size_monitoring_interval)
                qsize = self._results.qsize()
                if qsize > self._results.maxsize * 0.9:
                    self._logger.warning(
                        f"Result queue size ({qsize}) is above 90% of capacity ({self._results.maxsize})"
                    )
                else:
                    self._logger.debug(f"Current result queue size: {qsize}")
            except asyncio.CancelledError:
                self._logger.debug("Queue monitor shutting down.")
                break

    async def start(self) -> None:
        """
        Starts the metrics listener, the sink and all runners.

        Raises:
            ExpositionError: If the metrics endpoint cannot be bound. Nothing
                else is started in that case.
            RuntimeError: If the orchestrator was already started.
        """
        if self._started:
            raise RuntimeError("Orchestrator already started.")

        await self._server.start()
        self._started = True

        self._sink_task = asyncio.create_task(self._sink.run())
        self._monitor_task = asyncio.create_task(self._monitor_queue())
        self._logger.info(f"Starting {len(self._runners)} watchers.")
        self._runner_tasks = [
            asyncio.create_task(runner.run()) for runner in self._runners.values()
        ]
        if self._stop_requested:
            self.stop()

    def stop(self) -> None:
        """
        Tells every runner to stop. Returns immediately.

        This is the single shutdown entry point; it is idempotent and safe to
        call from a signal handler. Use wait() to await the end of the
        shutdown sequence.
        """
        if not self._stop_requested:
            self._logger.info("Stop requested...stopping watchers")
        self._stop_requested = True
        for runner in self._runners.values():
            runner.stop()

    async def wait(self) -> Dict[str, BaseException]:
        """
        Waits until all runners have finished, then drains and shuts down.

        Returns:
            Dict[str, BaseException]: The error of each runner that failed hard, by URL.

        Raises:
            SinkError: If the sink stopped while runners were still producing.
            RuntimeError: If the orchestrator was not started or wait() was
                already called.
        """
        if not self._started or self._sink_task is None:
            raise RuntimeError("Orchestrator not started.")
        if self._waited:
            raise RuntimeError("Orchestrator already waited; the result queue is closed.")
        self._waited = True

        runners_done = asyncio.gather(*self._runner_tasks, return_exceptions=True)
        try:
            await asyncio.wait({runners_done, self._sink_task}, return_when=asyncio.FIRST_COMPLETED)

            if self._sink_task.done():
                # The sink only ends after close(): anything else is a crash.
                await self._abort_runners(runners_done)
                raise SinkError("result sink stopped unexpectedly") from self._sink_failure()

            await runners_done
            self._logger.info("All watchers stopped, draining results...")
            await self._sink.close()
            try:
                await self._sink_task
            except Exception as e:
                raise SinkError(f"result sink failed while draining: {e}") from e
        finally:
            await self._shutdown_background()

        return dict(self._errors)

    async def run(self) -> Dict[str, BaseException]:
        """
        Starts everything and waits for the shutdown to complete.

        Returns:
            Dict[str, BaseException]: The error of each runner that failed hard, by URL.
        """
        await self.start()
        return await self.wait()

    def _sink_failure(self) -> Optional[BaseException]:
        if self._sink_task is None or self._sink_task.cancelled():
            return None
        return self._sink_task.exception()

    async def _abort_runners(self, runners_done: "asyncio.Future[Any]") -> None:
        # Nobody drains the queue anymore: runners blocked on put must be cancelled.
        self.stop()
        for task in self._runner_tasks:
            task.cancel()
        await asyncio.gather(runners_done, return_exceptions=True)

    async def _shutdown_background(self) -> None:
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            await asyncio.gather(self._monitor_task, return_exceptions=True)
        await self._server.stop()
        self._logger.info("Orchestrator shutdown complete.")
