"""
Per-target polling loop of the url watcher.

A TargetRunner drives one Target through an endless tick, probe, forward
cycle until it is told to stop or its probe fails hard.
"""

import asyncio
import logging
from asyncio import Queue
from enum import Enum
from typing import Any, Callable, Optional

from .contracts import TargetProber
from .domain import Target

# Module logger
logger = logging.getLogger(__name__)


class RunnerState(str, Enum):
    """Lifecycle of a runner. STOPPED is terminal."""

    RUNNING = "running"
    PROBING = "probing"
    STOPPED = "stopped"


class TargetRunner:
    """
    Owns the polling loop of a single target.

    Ticks are aligned on the start time plus multiples of the interval. A
    probe never overlaps the next one: when a probe outlasts one or more
    ticks, those ticks are dropped and polling resumes on the next aligned
    tick.

    Results are forwarded with a blocking put on the shared queue. When the
    sink falls behind, every runner waits on that put: there is no per-target
    buffering and memory stays bounded by the queue capacity.
    """

    def __init__(
        self,
        target: Target,
        prober: TargetProber,
        results: "Queue[Any]",
        on_finished: Optional[Callable[["TargetRunner", Optional[BaseException]], None]] = None,
    ) -> None:
        """
        Initializes a runner.

        Args:
            target: The target to poll.
            prober: Performs the individual checks.
            results: Queue shared with the result sink.
            on_finished: Called exactly once when the loop exits, with the
                error that ended it or None after a regular stop.
        """
        self._target: Target = target
        self._prober: TargetProber = prober
        self._results: "Queue[Any]" = results
        self._on_finished = on_finished
        self._stop_requested: asyncio.Event = asyncio.Event()
        self._state: RunnerState = RunnerState.RUNNING
        self._started: bool = False
        self._probe_count: int = 0

    @property
    def target(self) -> Target:
        return self._target

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def probe_count(self) -> int:
        """Number of probes started by this runner."""
        return self._probe_count

    def stop(self) -> None:
        """
        Asks the runner to stop.

        A runner waiting for its next tick exits at once. A probe in flight is
        not aborted: it completes or times out, its result is forwarded, and
        no further probe is started.
        """
        self._stop_requested.set()

    async def _wait_for_tick(self, deadline: float) -> bool:
        """
        Sleeps until the deadline unless a stop is requested first.

        Returns:
            bool: True when the tick is due, False when the runner must stop.
        """
        if self._stop_requested.is_set():
            return False
        delay = deadline - asyncio.get_running_loop().time()
        if delay <= 0:
            return True
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return True
        return False

    def _next_tick(self, previous: float, interval: float) -> float:
        now = asyncio.get_running_loop().time()
        deadline = previous + interval
        if deadline <= now:
            missed = int((now - deadline) // interval) + 1
            logger.debug(f"Dropping {missed} tick(s) for {self._target.url}")
            deadline += missed * interval
        return deadline

    async def run(self) -> None:
        """
        Runs the polling loop until stop() is called.

        Raises:
            ProbeError: When a probe fails for another reason than its timeout.
                The loop ends, the failure is not retried.
            RuntimeError: When the runner was already started.
        """
        if self._started:
            raise RuntimeError(f"Runner for {self._target.url} was already started.")
        self._started = True

        url = self._target.url
        interval = self._target.interval.total_seconds()
        deadline = asyncio.get_running_loop().time() + interval
        error: Optional[BaseException] = None

        try:
            while await self._wait_for_tick(deadline):
                logger.debug(f"checking url: {url}")
                self._state = RunnerState.PROBING
                self._probe_count += 1
                result = await self._prober.probe(self._target)
                await self._results.put(result)
                self._state = RunnerState.RUNNING
                deadline = self._next_tick(deadline, interval)

            logger.info(f"cancel called...stopping watcher for {url}")
        except asyncio.CancelledError:
            logger.info(f"Watcher for {url} cancelled.")
            raise
        except Exception as e:
            error = e
            logger.error(f"Watcher for {url} failed and stops: {e}")
            raise
        finally:
            self._state = RunnerState.STOPPED
            if self._on_finished is not None:
                self._on_finished(self, error)
