"""
Error taxonomy for the url watcher.

Soft probe failures (timeouts) are not errors: they are reported as a
ProbeResult with status code 0. Everything below is a genuine failure.
"""


class UrlWatcherError(Exception):
    """Base class for every error raised by the url watcher."""


class ConfigurationError(UrlWatcherError, ValueError):
    """Invalid construction input: bad durations, empty target list, bad sizes."""


class ProbeError(UrlWatcherError):
    """
    A hard probe failure: DNS resolution, refused connection, TLS error.

    Terminates only the runner of the affected target.
    """

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url: str = url


class ExpositionError(UrlWatcherError):
    """The metrics listener could not be started."""


class SinkError(UrlWatcherError):
    """The result sink stopped unexpectedly; metrics are no longer updated."""
