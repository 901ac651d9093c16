"""
InfluxDB Client Library

A small asyncio client for the InfluxDB 1.x HTTP API: ping and batched writes
in line protocol.

Usage:
    from influx_client import InfluxClient, ClientConfig, BatchPoints, Point

    client = InfluxClient(ClientConfig(url="http://localhost:8086", username="u", password="p"))
    await client.ping()
    await client.write(BatchPoints(database="metrics", points=[Point(...)]))
    await client.close()
"""

from .client import ClientConfig, InfluxClient, parse_url
from .errors import (
    ClientUnavailable,
    ConfigurationError,
    InfluxError,
    PingError,
    RetryableError,
    TimeoutExceeded,
    WriteError,
)
from .models import BatchPoints, Point

__version__ = "1.0.0"
__all__ = [
    "InfluxClient",
    "ClientConfig",
    "parse_url",
    "BatchPoints",
    "Point",
    "InfluxError",
    "ConfigurationError",
    "RetryableError",
    "TimeoutExceeded",
    "PingError",
    "WriteError",
    "ClientUnavailable",
]
