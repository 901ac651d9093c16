from __future__ import annotations

import asyncio
import json
import socket
import sys
from datetime import datetime, timezone

import typer
from loguru import logger

from influx_client import BatchPoints, ClientConfig, InfluxClient, InfluxError, Point

from .config import get_settings

app = typer.Typer(help="metrics-reporter operational CLI")

# ---------------------------
# Common options
# ---------------------------


def url_opt() -> str:
    return typer.Option(None, "--url", envvar="METRICS_REPORTER_URL", help="InfluxDB URL")


def database_opt() -> str:
    return typer.Option(
        None, "--database", envvar="METRICS_REPORTER_DATABASE", help="Target database"
    )


def _client(url: str | None) -> InfluxClient:
    s = get_settings()
    return InfluxClient(
        ClientConfig(
            url=url or s.url,
            username=s.username,
            password=s.password,
            timeout=s.timeout_sec,
        )
    )


@app.command("ping")
def ping(url: str = url_opt()):
    """Ping InfluxDB and print the round trip and server version."""

    async def _run():
        async with _client(url) as c:
            return await c.ping()

    try:
        rtt, version = asyncio.run(_run())
    except InfluxError as e:
        logger.error(f"ping failed: {e}")
        typer.echo(json.dumps({"ok": False, "error": str(e)}, indent=2))
        sys.exit(1)
    typer.echo(
        json.dumps({"ok": True, "version": version, "rtt_ms": round(rtt * 1000.0, 3)}, indent=2)
    )


@app.command("heartbeat")
def heartbeat(
    url: str = url_opt(),
    database: str = database_opt(),
    tag_host: bool = typer.Option(False, "--tag-host", help="Prefix with the local hostname"),
):
    """Write a single <host.>heartbeat point with value=1."""
    db = database or get_settings().database
    prefix = f"{socket.gethostname()}." if tag_host else ""
    point = Point(
        measurement=f"{prefix}heartbeat",
        fields={"value": 1},
        time=datetime.now(timezone.utc),
    )

    async def _run():
        async with _client(url) as c:
            return await c.write(BatchPoints(database=db, points=[point]))

    try:
        written = asyncio.run(_run())
    except InfluxError as e:
        logger.error(f"heartbeat failed: {e}")
        sys.exit(1)
    logger.success(f"Wrote heartbeat to {db}")
    typer.echo(json.dumps({"written": written, "measurement": point.measurement}, indent=2))


if __name__ == "__main__":
    app()
