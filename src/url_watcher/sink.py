"""
Result sink of the url watcher.

The sink is the single consumer of the queue all target runners write to and
the only component that mutates metric state.
"""

import asyncio
import logging
from typing import Any

from .contracts import ResultProcessor

# Module logger
logger = logging.getLogger(__name__)

# Queued behind the last result once no runner will produce anymore.
_END_OF_STREAM = object()


class ResultSink:
    """
    Drains probe results one at a time and hands them to a processor.

    Results of one URL are processed in the order their runner produced them;
    results of different URLs interleave in arrival order. The sink stops only
    after close() was called and every result queued before it was processed.
    """

    def __init__(self, results: "asyncio.Queue[Any]", processor: ResultProcessor) -> None:
        """
        Initializes the sink.

        Args:
            results: The bounded queue shared with the target runners.
            processor: Receives every result, typically a PrometheusProcessor.
        """
        self._results: "asyncio.Queue[Any]" = results
        self._processor: ResultProcessor = processor
        self._processed: int = 0

    @property
    def processed(self) -> int:
        """Number of results handed to the processor so far."""
        return self._processed

    async def run(self) -> int:
        """
        Consumes results until the end of the stream.

        A failure of the processor for one result is logged and does not stop
        the sink.

        Returns:
            int: The number of results processed.
        """
        logger.info("Result sink started.")
        while True:
            item = await self._results.get()
            try:
                if item is _END_OF_STREAM:
                    break
                try:
                    await self._processor.process(item)
                except Exception as e:
                    logger.exception(f"Processing failed for {item.url} with error: {e}")
                self._processed += 1
            finally:
                self._results.task_done()

        await self._processor.flush()
        logger.info(f"Result sink drained after {self._processed} results.")
        return self._processed

    async def close(self) -> None:
        """
        Signals that no more results will be produced.

        Must only be called once every producer has stopped; results already
        queued are still processed before run() returns.
        """
        await self._results.put(_END_OF_STREAM)
