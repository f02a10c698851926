"""
Configuration context for the url watcher.

This module defines a data structure that holds all configuration parameters
of the watcher. It is the single object the command line layer hands over to
the rest of the application.
"""

from typing import NamedTuple, Tuple


class WatcherContext(NamedTuple):
    """
    A data structure containing all configuration parameters of the watcher.

    Durations are kept as the raw strings given by the operator; they are
    validated when the orchestrator is constructed.

    Attributes:
        urls: The URLs to watch, in the order they were given.
        interval: Poll interval, e.g. "30s" or "1m30s".
        timeout: Per-probe timeout, e.g. "2s".
        host: Interface the metrics endpoint binds to.
        port: TCP port the metrics endpoint binds to.
        queue_size: Capacity of the result queue between runners and sink.
        instance_id: Identifier of this process, injected into every log record.
        logging_type: Type of logging configuration to use (dev, prod, or custom).
        logging_config_file: Path to a custom logging configuration file.
    """

    urls: Tuple[str, ...]
    interval: str
    timeout: str
    host: str
    port: int
    queue_size: int
    instance_id: str
    logging_type: str
    logging_config_file: str
