"""
Custom exceptions for the InfluxDB client.

Separates configuration mistakes from transport faults so callers can decide
what is fatal and what is worth trying again on the next tick.
"""

import asyncio


class InfluxError(Exception):
    """Base error for the InfluxDB client."""

    pass


class ConfigurationError(InfluxError):
    """Malformed endpoint URL or missing database name."""

    pass


class RetryableError(InfluxError):
    """Transient transport errors; the next scheduled attempt may succeed."""

    pass


class TimeoutExceeded(RetryableError):
    """Request did not complete within the client timeout."""

    pass


class PingError(RetryableError):
    """The /ping endpoint answered with something other than 204."""

    def __init__(self, status: int, message: str = ""):
        self.status = status
        super().__init__(f"ping failed with HTTP {status}: {message}".rstrip(": "))


class ClientUnavailable(RetryableError):
    """No live client handle (last rebuild failed)."""

    pass


class WriteError(InfluxError):
    """The /write endpoint rejected the batch."""

    def __init__(self, status: int, message: str = ""):
        self.status = status
        self.message = message
        super().__init__(f"write failed with HTTP {status}: {message}".rstrip(": "))


def map_http_error(e: Exception) -> InfluxError:
    import aiohttp

    if isinstance(e, InfluxError):
        return e
    if isinstance(e, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return TimeoutExceeded(str(e) or "request timed out")
    if isinstance(e, (aiohttp.ClientError, OSError)):
        return RetryableError(f"{type(e).__name__}: {e}")
    return InfluxError(str(e))
