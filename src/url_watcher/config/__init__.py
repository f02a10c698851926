"""
Configuration module for the url watcher.

This module provides functionality to parse command-line arguments and
environment variables into a configuration context. It defines default values
and help text for all configurable parameters.
"""

import argparse
import os
from typing import Any, List, Optional, Sequence, Tuple
from uuid import uuid4

from url_watcher.config.constants import (
    DEFAULT_HOST,
    DEFAULT_INSTANCE_ID_PREFIX,
    DEFAULT_INTERVAL,
    DEFAULT_LOGGING_CONFIG_FILE,
    DEFAULT_LOGGING_TYPE,
    DEFAULT_PORT,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_TIMEOUT,
    ENV_PREFIX,
)
from url_watcher.config.watcher_context import WatcherContext


def _split_urls(values: Optional[Sequence[str]]) -> Tuple[str, ...]:
    """
    Flatten repeated and comma separated url options into one ordered tuple.

    Args:
        values: Raw option values, each possibly holding several comma separated urls.

    Returns:
        Tuple[str, ...]: The non-blank urls in the order they were given.
    """
    urls: List[str] = []
    for value in values or []:
        urls.extend(part.strip() for part in value.split(",") if part.strip())
    return tuple(urls)


def get_context(argv: Optional[Sequence[str]] = None) -> WatcherContext:
    """
    Parse command-line arguments and environment variables to create a configuration context.

    For each option, a command-line argument wins, then the matching
    URL_WATCHER_* environment variable, and finally the default value.
    Urls given on the command line replace the ones from the environment.

    Args:
        argv: Arguments to parse instead of sys.argv[1:].

    Returns:
        WatcherContext: A configuration context object containing all parsed settings.
    """
    parser = argparse.ArgumentParser(
        description="Polls urls for liveness and latency and serves the results as Prometheus metrics."
    )

    parser.add_argument(
        "-u",
        "--url",
        dest="urls",
        action="append",
        type=str,
        default=None,
        help="A url to watch. Repeat the option or separate urls with commas.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}URLS environment variable.",
    )

    parser.add_argument(
        "-i",
        "--interval",
        type=str,
        default=os.getenv(f"{ENV_PREFIX}INTERVAL", DEFAULT_INTERVAL),
        help="How long to wait between checks, e.g. 500ms, 30s, 1m.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}INTERVAL environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_INTERVAL} is used.",
    )

    parser.add_argument(
        "-t",
        "--timeout",
        type=str,
        default=os.getenv(f"{ENV_PREFIX}TIMEOUT", DEFAULT_TIMEOUT),
        help="How long to wait before abandoning a check.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}TIMEOUT environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_TIMEOUT} is used.",
    )

    parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=int(os.getenv(f"{ENV_PREFIX}PORT", DEFAULT_PORT)),
        help="Port the metrics are served from.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}PORT environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_PORT} is used.",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=os.getenv(f"{ENV_PREFIX}HOST", DEFAULT_HOST),
        help="Interface the metrics endpoint binds to.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}HOST environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_HOST} is used.",
    )

    parser.add_argument(
        "-qs",
        "--queue-size",
        type=int,
        default=int(os.getenv(f"{ENV_PREFIX}QUEUE_SIZE", DEFAULT_QUEUE_SIZE)),
        help="Maximum number of results waiting for the metrics sink.\n"
        "Runners block when the queue is full.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}QUEUE_SIZE environment variable.\n"
        f"If that is also absent, a default value of {DEFAULT_QUEUE_SIZE} is used.",
    )

    parser.add_argument(
        "-iid",
        "--instance-id",
        type=str,
        default=os.getenv(f"{ENV_PREFIX}INSTANCE_ID", f"{DEFAULT_INSTANCE_ID_PREFIX}{uuid4()}"),
        help="Identifier of this watcher instance, added to every log record.\n"
        f"If not provided, the value is read from the {ENV_PREFIX}INSTANCE_ID environment variable.\n"
        f"If that is also absent, the default value will be {DEFAULT_INSTANCE_ID_PREFIX}uuid4().",
    )

    parser.add_argument(
        "-lt",
        "--logging-type",
        type=str,
        default=os.getenv(f"{ENV_PREFIX}LOGGING_TYPE", DEFAULT_LOGGING_TYPE),
        help="Specifies the logging configuration type to use.\n"
        "Allowed values: dev, prod, custom (case insensitive).\n"
        "For 'dev' and 'prod', system will use built-in configurations.\n"
        "For 'custom', the --logging-config-file argument is required.",
    )

    parser.add_argument(
        "-lcf",
        "--logging-config-file",
        type=str,
        default=os.getenv(f"{ENV_PREFIX}LOGGING_CONFIG_FILE", DEFAULT_LOGGING_CONFIG_FILE),
        help="Path to custom logging configuration file.\n"
        "Required when --logging-type is set to 'custom'.",
    )

    args: Any = parser.parse_args(argv)

    urls = _split_urls(args.urls)
    if not urls:
        urls = _split_urls([os.getenv(f"{ENV_PREFIX}URLS", "")])

    return WatcherContext(
        urls=urls,
        interval=args.interval,
        timeout=args.timeout,
        host=args.host,
        port=args.port,
        queue_size=args.queue_size,
        instance_id=args.instance_id,
        logging_type=args.logging_type,
        logging_config_file=args.logging_config_file,
    )
