"""
Core interfaces for the url watcher.

This module defines the abstract base classes the polling engine is built on.
The runners only know a TargetProber, the sink only knows a ResultProcessor,
which keeps the network and the metric backends pluggable.
"""

import abc

from .domain import ProbeResult, Target


class TargetProber(abc.ABC):
    """
    Abstract interface for a component that performs one check of a target.

    Implementations are stateless per call and never write shared state.
    """

    @abc.abstractmethod
    async def probe(self, target: Target) -> ProbeResult:
        """
        Performs a single timed GET against the target's URL.

        Args:
            target: The Target to check; its timeout bounds the request.

        Returns:
            ProbeResult: The outcome of the check. A request that does not
                complete within the target's timeout yields status code 0.

        Raises:
            ProbeError: On any transport failure other than the timeout.
        """
        pass


class ResultProcessor(abc.ABC):
    """
    Abstract interface for a component that consumes probe results.

    The result sink calls it from a single task, one result at a time.
    """

    @abc.abstractmethod
    async def process(self, result: ProbeResult) -> None:
        """
        Processes a single ProbeResult.

        Args:
            result: The outcome of a completed probe.
        """
        pass

    @abc.abstractmethod
    async def flush(self) -> None:
        """
        Forces out anything the processor buffered.

        Called once when the sink has drained the result stream. Processors
        that do not buffer implement it as a no-op.
        """
        pass
