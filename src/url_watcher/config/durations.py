"""
Parsing of Go-style duration strings.

Operators configure intervals and timeouts the way they are written in most
monitoring tools: "200ms", "2s", "1m30s", "1.5h". A duration is a sequence of
decimal numbers, each with an optional fraction and a mandatory unit suffix.
"""

import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from url_watcher.exceptions import ConfigurationError

# Unit suffix -> length in microseconds
_UNITS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),
    "μs": Decimal(1),
    "ms": Decimal(1000),
    "s": Decimal(1000000),
    "m": Decimal(60000000),
    "h": Decimal(3600000000),
}

_COMPONENT = re.compile(r"(\d*\.?\d*)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration string into a timedelta.

    Args:
        text: The duration, e.g. "300ms", "2s" or "1h15m".

    Returns:
        timedelta: The parsed duration, truncated to microseconds.

    Raises:
        ConfigurationError: If the text is not a valid duration.
    """
    if not isinstance(text, str) or not text.strip():
        raise ConfigurationError(f"invalid duration: {text!r}")

    raw = text.strip()
    sign = Decimal(1)
    if raw[0] in "+-":
        sign = Decimal(-1) if raw[0] == "-" else Decimal(1)
        raw = raw[1:]

    # Go accepts a bare zero without unit
    if raw == "0":
        return timedelta(0)

    total = Decimal(0)
    position = 0
    while position < len(raw):
        match = _COMPONENT.match(raw, position)
        if match is None or match.end() == position:
            raise ConfigurationError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        if number in ("", "."):
            raise ConfigurationError(f"invalid duration: {text!r}")
        try:
            total += Decimal(number) * _UNITS[unit]
        except InvalidOperation as err:
            raise ConfigurationError(f"invalid duration: {text!r}") from err
        position = match.end()

    return timedelta(microseconds=int(sign * total))


def parse_positive_duration(text: str, name: str) -> timedelta:
    """
    Parse a duration that must be strictly positive.

    Args:
        text: The duration string.
        name: What the duration configures, used in the error message.

    Returns:
        timedelta: The parsed, positive duration.

    Raises:
        ConfigurationError: If the text is invalid or not positive.
    """
    try:
        value = parse_duration(text)
    except ConfigurationError as err:
        raise ConfigurationError(f"could not parse {name}: {text}") from err
    if value <= timedelta(0):
        raise ConfigurationError(f"{name} must be a positive duration: {text}")
    return value
