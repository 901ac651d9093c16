"""
Periodic InfluxDB reporter.

Two autonomous tickers (emission at the configured interval, health at a
fixed 5 seconds) post ticks onto one queue; a single loop consumes them, so
only one handler runs at a time. A ticker re-arms only after its tick was
handled: slow handlers cause drift, never a backlog.
"""

from __future__ import annotations

import asyncio
import socket
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional, Union

from loguru import logger

from influx_client import BatchPoints, ClientConfig, ConfigurationError, InfluxClient, parse_url

from .config import ReporterSettings, get_settings
from .snapshot import translate
from .supervisor import ConnectionSupervisor
from .telemetry import (
    REPORTER_EMISSIONS_TOTAL,
    REPORTER_POINTS_WRITTEN_TOTAL,
    REPORTER_WRITE_LATENCY_MS,
)

HEALTH_INTERVAL_SEC = 5.0

Duration = Union[float, int, timedelta]


class Tick(str, Enum):
    EMIT = "emit"
    HEALTH = "health"


def _seconds(d: Duration) -> float:
    if isinstance(d, timedelta):
        return d.total_seconds()
    return float(d)


class Reporter:
    """Posts the metrics of a registry to InfluxDB every ``interval``.

    Example:
        registry = MetricsRegistry()
        async with Reporter(registry, 10.0, "http://influx:8086", "metrics") as rep:
            ...  # reporting in the background
    """

    def __init__(
        self,
        registry: Any,
        interval: Duration,
        url: str,
        database: str,
        username: str = "",
        password: str = "",
        tag_host: bool = False,
        *,
        ping_interval: Duration = HEALTH_INTERVAL_SEC,
        timeout: Optional[float] = 10.0,
        hostname: Callable[[], str] = socket.gethostname,
        client_factory: Optional[Callable[[], InfluxClient]] = None,
    ):
        self._interval = _seconds(interval)
        self._ping_interval = _seconds(ping_interval)
        if self._interval <= 0:
            raise ValueError("interval must be > 0")
        if self._ping_interval <= 0:
            raise ValueError("ping_interval must be > 0")
        if not database:
            raise ConfigurationError("database must not be empty")
        parse_url(url)

        self._registry = registry
        self._database = database
        self._tag_host = tag_host
        self._hostname = hostname
        self._client_cfg = ClientConfig(
            url=url, username=username, password=password, timeout=timeout
        )
        self._supervisor = ConnectionSupervisor(client_factory or self._make_client)

        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls, registry: Any, settings: Optional[ReporterSettings] = None, **kwargs
    ) -> "Reporter":
        s = settings or get_settings()
        return cls(
            registry,
            s.interval_sec,
            s.url,
            s.database,
            s.username,
            s.password,
            s.tag_host,
            ping_interval=s.ping_interval_sec,
            timeout=s.timeout_sec,
            **kwargs,
        )

    def _make_client(self) -> InfluxClient:
        return InfluxClient(self._client_cfg)

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def supervisor(self) -> ConnectionSupervisor:
        return self._supervisor

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---------- lifecycle ----------

    async def __aenter__(self) -> "Reporter":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def start(self) -> bool:
        """Build the client and spawn the loop as a background task.

        Returns False (after logging) when the client cannot be built.
        """
        if self.running:
            return True
        if not self._connect():
            return False
        self._task = asyncio.create_task(self.run(), name="metrics-reporter")
        return True

    async def stop(self) -> None:
        """Cancel the loop and close the client."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self._supervisor.discard()

    def _connect(self) -> bool:
        try:
            self._supervisor.connect()
            return True
        except Exception as e:
            logger.error(f"unable to make InfluxDB client. err={e}")
            return False

    # ---------- loop ----------

    async def run(self, stop: Optional[asyncio.Event] = None) -> None:
        """Report until cancelled or until ``stop`` is set. Never raises on I/O errors."""
        if not self._supervisor.has_client and not self._connect():
            return

        queue: asyncio.Queue = asyncio.Queue()
        tasks = [
            asyncio.create_task(self._ticker(Tick.EMIT, self._interval, queue)),
            asyncio.create_task(self._ticker(Tick.HEALTH, self._ping_interval, queue)),
        ]
        if stop is not None:
            tasks.append(asyncio.create_task(self._watch(stop, queue)))

        logger.info(
            f"InfluxDB reporter started (url={self._client_cfg.url}, db={self._database}, "
            f"interval={self._interval}s, ping_interval={self._ping_interval}s)"
        )
        try:
            while True:
                tick, handled = await queue.get()
                if tick is None:
                    break
                try:
                    await self._handle(tick)
                finally:
                    handled.set()
        finally:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self._supervisor.discard()
            logger.info("InfluxDB reporter stopped")

    @staticmethod
    async def _ticker(tick: Tick, period: float, queue: asyncio.Queue) -> None:
        while True:
            await asyncio.sleep(period)
            handled = asyncio.Event()
            await queue.put((tick, handled))
            await handled.wait()

    @staticmethod
    async def _watch(stop: asyncio.Event, queue: asyncio.Queue) -> None:
        await stop.wait()
        await queue.put((None, None))

    async def _handle(self, tick: Tick) -> None:
        if tick is Tick.EMIT:
            try:
                await self.send()
                REPORTER_EMISSIONS_TOTAL.labels(outcome="success").inc()
            except Exception as e:
                REPORTER_EMISSIONS_TOTAL.labels(outcome="error").inc()
                logger.warning(f"unable to send metrics to InfluxDB. err={e}")
        else:
            await self._supervisor.check()

    # ---------- emission ----------

    def host_prefix(self) -> str:
        """``<hostname>.`` when host tagging is on, else empty. Raises OSError."""
        if not self._tag_host:
            return ""
        return f"{self._hostname()}."

    def snapshot(self, now: Optional[datetime] = None) -> BatchPoints:
        """Translate the registry into one batch, every point stamped ``now``."""
        now = now or datetime.now(timezone.utc)
        points = translate(self._registry, now, self.host_prefix())
        return BatchPoints(database=self._database, points=points)

    async def send(self) -> int:
        """One emission cycle: snapshot, then a single write. Errors propagate."""
        batch = self.snapshot()
        client = self._supervisor.client

        t0 = time.perf_counter()
        written = await client.write(batch)
        REPORTER_WRITE_LATENCY_MS.observe((time.perf_counter() - t0) * 1000.0)
        REPORTER_POINTS_WRITTEN_TOTAL.inc(written)

        logger.debug(f"Sent {written} points to InfluxDB database {self._database}")
        return written


async def influxdb(
    registry: Any,
    interval: Duration,
    url: str,
    database: str,
    username: str = "",
    password: str = "",
    tag_host: bool = False,
    *,
    stop: Optional[asyncio.Event] = None,
    **kwargs,
) -> None:
    """Report ``registry`` to InfluxDB every ``interval`` until cancelled or ``stop`` is set.

    Configuration errors are logged and the call returns immediately; once
    running, nothing is raised to the caller.
    """
    try:
        reporter = Reporter(
            registry, interval, url, database, username, password, tag_host, **kwargs
        )
    except (ConfigurationError, ValueError) as e:
        logger.error(f"unable to start InfluxDB reporter for url {url}. err={e}")
        return

    await reporter.run(stop)
