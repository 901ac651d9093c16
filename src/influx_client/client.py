from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Tuple

import aiohttp
from loguru import logger
from yarl import URL

from .errors import ConfigurationError, PingError, WriteError, map_http_error
from .line_protocol import encode_points
from .models import BatchPoints


@dataclass(frozen=True)
class ClientConfig:
    url: str
    username: str = ""
    password: str = ""
    timeout: Optional[float] = 10.0
    user_agent: str = "metrics-reporter"


def parse_url(url: str) -> URL:
    """Parse and validate an InfluxDB endpoint URL."""
    try:
        u = URL(url)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid InfluxDB url {url!r}: {e}") from e
    if u.scheme not in ("http", "https"):
        raise ConfigurationError(f"invalid InfluxDB url {url!r}: scheme must be http or https")
    if not u.host:
        raise ConfigurationError(f"invalid InfluxDB url {url!r}: missing host")
    return u


class InfluxClient:
    """
    Minimal asyncio client for the InfluxDB 1.x HTTP API.

    Construction only validates configuration; the HTTP session is opened on
    first use so a client can be built outside a running event loop.

    Usage:
        async with InfluxClient(ClientConfig(url="http://localhost:8086")) as c:
            rtt, version = await c.ping()
            await c.write(BatchPoints(database="metrics", points=[...]))
    """

    def __init__(self, config: ClientConfig):
        self._cfg = config
        self._url = parse_url(config.url)
        self._headers = {"User-Agent": config.user_agent}
        if config.username:
            self._headers["Authorization"] = aiohttp.BasicAuth(
                config.username, config.password
            ).encode()
        self._timeout = aiohttp.ClientTimeout(total=config.timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def url(self) -> URL:
        return self._url

    @property
    def closed(self) -> bool:
        return self._session is None or self._session.closed

    async def __aenter__(self) -> "InfluxClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ---------- internal helpers ----------

    def _endpoint(self, path: str) -> URL:
        base = self._url.path.rstrip("/")
        return self._url.with_path(f"{base}/{path}")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers=self._headers,
            )
        return self._session

    @staticmethod
    async def _error_message(resp: aiohttp.ClientResponse) -> str:
        text = await resp.text()
        if resp.content_type == "application/json":
            try:
                body = await resp.json()
                return str(body.get("error", text))
            except (ValueError, aiohttp.ContentTypeError, AttributeError):
                pass
        return text.strip()

    # ---------- health ----------

    async def ping(self) -> Tuple[float, str]:
        """Ping the server. Returns (round-trip seconds, server version)."""
        session = self._get_session()
        t0 = time.perf_counter()
        try:
            async with session.get(self._endpoint("ping")) as resp:
                if resp.status != 204:
                    raise PingError(resp.status, await self._error_message(resp))
                version = resp.headers.get("X-Influxdb-Version", "")
        except PingError:
            raise
        except Exception as e:
            raise map_http_error(e) from e
        return time.perf_counter() - t0, version

    # ---------- writes ----------

    async def write(self, batch: BatchPoints) -> int:
        """Write a batch in one request. Returns the number of lines sent."""
        body = encode_points(batch.points)
        if not body:
            logger.debug(f"Skipping empty write to database {batch.database}")
            return 0

        session = self._get_session()
        params = {"db": batch.database, "precision": "n"}
        try:
            async with session.post(
                self._endpoint("write"),
                params=params,
                data=body.encode(),
                headers={"Content-Type": "text/plain; charset=utf-8"},
            ) as resp:
                if resp.status != 204:
                    raise WriteError(resp.status, await self._error_message(resp))
        except WriteError:
            raise
        except Exception as e:
            raise map_http_error(e) from e
        return body.count("\n") + 1
