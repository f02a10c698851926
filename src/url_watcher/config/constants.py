"""
Constants for the url watcher.

This module defines default values for all configurable parameters. These
constants are used as fallback values when neither command-line arguments nor
environment variables are provided.
"""

# Polling defaults
DEFAULT_INTERVAL = "30s"
DEFAULT_TIMEOUT = "2s"
DEFAULT_QUEUE_SIZE = 16

# Exposition defaults
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 80
METRICS_PATH = "/metrics"

# Instance configuration defaults
DEFAULT_INSTANCE_ID_PREFIX = "url-watcher-"

# Logging configuration defaults
DEFAULT_LOGGING_TYPE = "prod"
DEFAULT_LOGGING_CONFIG_FILE = ""

# Environment variable prefix
ENV_PREFIX = "URL_WATCHER_"
