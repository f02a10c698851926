"""
Logging configuration module for the url watcher.

This module configures logging for the application based on the configuration
context. It supports built-in development and production configurations as
well as a custom configuration file.
"""

import json
import logging.config
import os
from typing import Any, Dict

from url_watcher.config.watcher_context import WatcherContext


def configure_logging(context: WatcherContext) -> None:
    """
    Configure logging for the application based on the provided configuration.

    The logging type of the context selects the dictConfig file to apply:
    - dev: debug level console output, aiohttp and asyncio kept at INFO
    - prod: info level console output, aiohttp access logs silenced
    - custom: the file given with --logging-config-file

    Once the configuration is applied, an instance ID filter is attached to the
    root logger and to each of its handlers. Filters on a logger only see the
    records logged on that very logger, while handler filters see the records
    propagated from every module logger, so the handler filters are the ones
    that make %(instance_id)s available to the formatters.

    Args:
        context: Configuration context containing logging settings.

    Raises:
        ValueError: If the logging type is invalid or if a custom logging
            configuration file is not provided when using the 'custom' type.
    """
    logging_type: str = context.logging_type.lower()
    if not logging_type:
        raise ValueError("Logging type must be provided.")
    elif logging_type == "dev":
        _load_logging_config(_get_local_package_file_path("logging-config-dev.json"))
    elif logging_type == "prod":
        _load_logging_config(_get_local_package_file_path("logging-config-prod.json"))
    elif logging_type == "custom":
        if not context.logging_config_file:
            raise ValueError("Custom logging configuration file must be provided.")
        _load_logging_config(context.logging_config_file)
    else:
        raise ValueError(
            f"Invalid logging type: {context.logging_type}. Allowed values are: dev, prod, custom"
        )

    root_logger = logging.getLogger()
    instance_filter = _InstanceIdFilter(instance_id=context.instance_id)
    root_logger.addFilter(instance_filter)
    for handler in root_logger.handlers:
        handler.addFilter(instance_filter)

    logging.debug("Logging configured and InstanceIdFilter added.")


def _load_logging_config(config_file: str) -> None:
    """
    Load logging configuration from a JSON file.

    The file is parsed as JSON and handed to logging.config.dictConfig, which
    replaces the handlers and formatters currently installed. Existing module
    loggers stay enabled as long as the file sets disable_existing_loggers to
    false, as the built-in files do.

    Args:
        config_file: Path to the JSON file containing logging configuration.

    Raises:
        RuntimeError: If the file is not found, contains invalid JSON, or
            if there is any other error loading the configuration.
    """
    try:
        with open(config_file) as f:
            config: Dict[str, Any] = json.load(f)
            logging.config.dictConfig(config)
    except FileNotFoundError as err:
        raise RuntimeError(f"Logging config file not found: {config_file}") from err
    except json.JSONDecodeError as err:
        raise RuntimeError(f"Invalid JSON format in logging config file: {config_file}") from err
    except Exception as err:
        raise RuntimeError(f"Error loading logging config: {str(err)}") from err


def _get_local_package_file_path(config_file: str) -> str:
    """
    Get the absolute path to a file in the same directory as this module.

    The built-in logging configurations are shipped as package data next to
    this module, so they are found whether the package is installed or run
    from a source checkout.

    Args:
        config_file: Name of the file to locate.

    Returns:
        str: Absolute path to the specified file.
    """
    return os.path.join(os.path.dirname(__file__), config_file)


class _InstanceIdFilter(logging.Filter):
    """
    A logging filter that injects the instance ID into every log record.

    The 'instance_id' attribute can be referenced by formatters to tell
    apart the output of several watchers shipping to the same log store.
    """

    def __init__(self, instance_id: str) -> None:
        """
        Initialize the filter with an instance ID.

        Args:
            instance_id: The identifier of this watcher process.
        """
        super().__init__()
        self._instance_id: str = instance_id

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Add the instance ID to the log record.

        Args:
            record: The log record to be processed.

        Returns:
            bool: Always True, the filter never drops a record.
        """
        record.instance_id = self._instance_id
        return True
