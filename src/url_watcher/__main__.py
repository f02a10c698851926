"""
Main entry point of the url watcher.

This module parses the configuration, sets up logging, builds the HTTP session
and the orchestrator, and translates process signals into a graceful shutdown.

Exit codes:
    0: clean shutdown
    1: invalid configuration
    2: the metrics endpoint could not be bound or the result sink failed
"""

import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

import aiohttp

from url_watcher.config import WatcherContext, get_context
from url_watcher.config.http_config import get_http_session
from url_watcher.config.logging_config import configure_logging
from url_watcher.exceptions import ConfigurationError, ExpositionError, SinkError
from url_watcher.orchestrator import WatcherOrchestrator
from url_watcher.prober.aiohttp_prober import AiohttpProber

EXIT_OK = 0
EXIT_CONFIGURATION_ERROR = 1
EXIT_RUNTIME_ERROR = 2


def _install_signal_handlers(orchestrator: WatcherOrchestrator) -> None:
    """
    Routes SIGINT and SIGTERM to the orchestrator's stop().

    Args:
        orchestrator: The orchestrator to stop on a signal.
    """
    logger = logging.getLogger(__name__)
    loop = asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals) -> None:
        logger.info(f"{sig.name} signal received...stopping watchers")
        orchestrator.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
        except NotImplementedError:
            # add_signal_handler is not available on Windows event loops
            signal.signal(sig, lambda signum, frame: loop.call_soon_threadsafe(orchestrator.stop))


async def main(context: WatcherContext) -> int:
    """
    Set up and run the url watcher until it is stopped.

    Args:
        context: Configuration context containing all application settings.

    Returns:
        int: The process exit code.
    """
    logger: logging.Logger = logging.getLogger(__name__)
    logger.info("Starting url watcher...")

    http_session: aiohttp.ClientSession = get_http_session(context)
    try:
        orchestrator = WatcherOrchestrator(
            urls=context.urls,
            interval=context.interval,
            timeout=context.timeout,
            port=context.port,
            prober=AiohttpProber(http_session),
            host=context.host,
            queue_size=context.queue_size,
        )
        logger.info("watching urls: " + ", ".join(target.url for target in orchestrator.targets))

        await orchestrator.start()
        _install_signal_handlers(orchestrator)
        errors = await orchestrator.wait()
        for url, error in errors.items():
            logger.warning(f"{url} stopped after a failed check: {error}")
        return EXIT_OK
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIGURATION_ERROR
    except (ExpositionError, SinkError) as e:
        logger.error(f"Metrics unavailable, shutting down: {e}")
        return EXIT_RUNTIME_ERROR
    finally:
        await http_session.close()
        logger.info("Shutdown complete.")


def run(argv: Optional[Sequence[str]] = None) -> int:
    """
    Console script entry point.

    Args:
        argv: Arguments to parse instead of sys.argv[1:].

    Returns:
        int: The process exit code.
    """
    context: WatcherContext = get_context(argv)
    try:
        configure_logging(context)
    except (ValueError, RuntimeError) as e:
        print(f"failed configuring logging: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    try:
        return asyncio.run(main(context))
    except KeyboardInterrupt:
        logging.info("Shutdown initiated by user (Ctrl+C).")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(run())
