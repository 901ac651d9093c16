"""
Connection supervision for the reporter's InfluxDB client.

Pings on a fixed cadence and replaces the client handle when a ping fails.
There is no backoff: a failed rebuild is simply tried again on the next
health tick.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from loguru import logger

from influx_client import ClientUnavailable, InfluxClient

from .telemetry import REPORTER_PINGS_TOTAL, REPORTER_RECONNECTS_TOTAL

ClientFactory = Callable[[], InfluxClient]


class ConnectionState(str, Enum):
    CONNECTED = "connected"  # handle present, assumed healthy
    RECONNECTING = "reconnecting"  # last ping or rebuild failed


class ConnectionSupervisor:
    """Owns the single live client handle.

    Example:
        sup = ConnectionSupervisor(lambda: InfluxClient(cfg))
        sup.connect()          # raises on configuration errors
        await sup.check()      # every health tick
        await sup.client.write(batch)
    """

    def __init__(self, factory: ClientFactory):
        self._factory = factory
        self._client: Optional[InfluxClient] = None
        self._state = ConnectionState.RECONNECTING

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def has_client(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> InfluxClient:
        """The live handle; raises ClientUnavailable when the last rebuild failed."""
        if self._client is None:
            raise ClientUnavailable("no InfluxDB client (waiting for reconnect)")
        return self._client

    def connect(self) -> InfluxClient:
        """Build the handle. Errors propagate to the caller."""
        self._client = self._factory()
        self._state = ConnectionState.CONNECTED
        return self._client

    async def check(self) -> bool:
        """One health tick: ping, rebuilding the handle on failure.

        Returns True when the ping succeeded. Never raises.
        """
        if self._client is not None:
            try:
                await self._client.ping()
                REPORTER_PINGS_TOTAL.labels(outcome="success").inc()
                self._state = ConnectionState.CONNECTED
                return True
            except Exception as e:
                REPORTER_PINGS_TOTAL.labels(outcome="error").inc()
                logger.warning(
                    f"got error while sending a ping to InfluxDB, trying to recreate client. err={e}"
                )

        await self._rebuild()
        return False

    async def _rebuild(self) -> None:
        self._state = ConnectionState.RECONNECTING
        await self.discard()
        try:
            self.connect()
            REPORTER_RECONNECTS_TOTAL.labels(outcome="success").inc()
            logger.info("InfluxDB client recreated")
        except Exception as e:
            REPORTER_RECONNECTS_TOTAL.labels(outcome="error").inc()
            logger.error(f"unable to make InfluxDB client. err={e}")

    async def discard(self) -> None:
        """Close and drop the current handle, if any."""
        old, self._client = self._client, None
        if old is None:
            return
        try:
            await old.close()
        except Exception as e:
            logger.debug(f"Error closing stale InfluxDB client (ignored): {type(e).__name__}: {e}")
