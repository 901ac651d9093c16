"""
Unit tests for Reporter.

Tests cover:
- Startup validation (interval, url, database)
- Emission cycle: batch shape, host prefix, hostname failure
- Loop: both tickers fire, errors never stop the loop, recovery after a failed ping
- Lifecycle: stop event, start/stop, context manager, influxdb() entry point

SAFEGUARDS:
- Intervals are tens of milliseconds
- Every loop is bounded by asyncio.wait_for
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import FakeClient
from influx_client import BatchPoints, ClientUnavailable, ConfigurationError, RetryableError
from metrics_reporter import Counter, Reporter, ReporterSettings, influxdb

pytestmark = pytest.mark.timeout(5)

URL = "http://influx.test:8086"


def make_reporter(registry, client=None, **kwargs):
    client = client or FakeClient()
    interval = kwargs.pop("interval", 0.02)
    kwargs.setdefault("ping_interval", 10.0)
    rep = Reporter(registry, interval, URL, "metrics", client_factory=lambda: client, **kwargs)
    return rep, client


async def run_for(rep, seconds):
    stop = asyncio.Event()
    task = asyncio.create_task(rep.run(stop))
    await asyncio.sleep(seconds)
    stop.set()
    await asyncio.wait_for(task, timeout=2)


class TestStartupValidation:
    def test_rejects_non_positive_interval(self, registry):
        with pytest.raises(ValueError):
            Reporter(registry, 0, URL, "metrics")
        with pytest.raises(ValueError):
            Reporter(registry, timedelta(seconds=-1), URL, "metrics")

    def test_rejects_non_positive_ping_interval(self, registry):
        with pytest.raises(ValueError):
            Reporter(registry, 1, URL, "metrics", ping_interval=0)

    @pytest.mark.parametrize("url", ["not a url", "ftp://influx:8086", "http://", ""])
    def test_rejects_malformed_url(self, registry, url):
        with pytest.raises(ConfigurationError):
            Reporter(registry, 1, url, "metrics")

    def test_rejects_empty_database(self, registry):
        with pytest.raises(ConfigurationError):
            Reporter(registry, 1, URL, "")

    def test_accepts_timedelta_interval(self, registry):
        rep = Reporter(registry, timedelta(milliseconds=1500), URL, "metrics")
        assert rep.interval == 1.5

    def test_from_settings(self, registry):
        settings = ReporterSettings(
            url=URL, database="ops", interval_sec=2.0, ping_interval_sec=1.0, tag_host=True
        )
        rep = Reporter.from_settings(registry, settings, hostname=lambda: "web-1")
        assert rep.interval == 2.0
        assert rep.host_prefix() == "web-1."

    def test_from_settings_without_timeout(self, registry):
        settings = ReporterSettings(_env_file=None, url=URL, timeout_sec=None)
        rep = Reporter.from_settings(registry, settings)
        assert rep._client_cfg.timeout is None
        client = rep._make_client()
        assert client._timeout.total is None


class TestSend:
    @pytest.mark.asyncio
    async def test_counter_scenario(self, registry):
        registry.get_or_register("requests", Counter).inc(42)
        rep, client = make_reporter(registry)
        rep.supervisor.connect()

        await rep.send()

        client.write.assert_awaited_once()
        batch = client.write.await_args.args[0]
        assert isinstance(batch, BatchPoints)
        assert batch.database == "metrics"
        assert len(batch.points) == 1
        assert batch.points[0].measurement == "requests.count"
        assert batch.points[0].fields == {"value": 42}

    @pytest.mark.asyncio
    async def test_host_prefix(self, registry):
        registry.register("requests", Counter())
        registry.register("errors", Counter())
        rep, client = make_reporter(registry, tag_host=True, hostname=lambda: "web-1")
        rep.supervisor.connect()

        await rep.send()

        batch = client.write.await_args.args[0]
        assert sorted(p.measurement for p in batch.points) == [
            "web-1.errors.count",
            "web-1.requests.count",
        ]
        assert len({p.time for p in batch.points}) == 1

    @pytest.mark.asyncio
    async def test_hostname_failure_aborts_emission(self, registry):
        def broken_hostname():
            raise OSError("no hostname")

        registry.register("requests", Counter())
        rep, client = make_reporter(registry, tag_host=True, hostname=broken_hostname)
        rep.supervisor.connect()

        with pytest.raises(OSError):
            await rep.send()
        client.write.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_without_client(self, registry):
        rep, _ = make_reporter(registry)
        with pytest.raises(ClientUnavailable):
            await rep.send()

    @pytest.mark.asyncio
    async def test_empty_registry_still_writes_once(self, registry):
        rep, client = make_reporter(registry)
        rep.supervisor.connect()
        await rep.send()
        batch = client.write.await_args.args[0]
        assert batch.points == []


class TestLoop:
    @pytest.mark.asyncio
    async def test_emits_and_pings(self, registry):
        registry.get_or_register("requests", Counter).inc()
        rep, client = make_reporter(registry, interval=0.02, ping_interval=0.03)

        await run_for(rep, 0.25)

        assert client.write.await_count >= 2
        assert client.pings >= 2
        assert client.closed

    @pytest.mark.asyncio
    async def test_write_errors_do_not_stop_loop(self, registry):
        client = FakeClient()
        client.write.side_effect = RetryableError("connection refused")
        rep, _ = make_reporter(registry, client=client, interval=0.02)

        await run_for(rep, 0.2)

        assert client.write.await_count >= 2

    @pytest.mark.asyncio
    async def test_slow_handler_causes_drift_not_backlog(self, registry):
        client = FakeClient()

        async def slow_write(batch):
            await asyncio.sleep(0.1)
            return 0

        client.write.side_effect = slow_write
        rep, _ = make_reporter(registry, client=client, interval=0.01)

        await run_for(rep, 0.35)

        assert 1 <= client.write.await_count <= 5

    @pytest.mark.asyncio
    async def test_recovers_after_failed_ping(self, registry):
        registry.get_or_register("requests", Counter).inc()
        dead = FakeClient(name="dead", ping_outcomes=[False])
        dead.write.side_effect = RetryableError("connection reset")
        healthy = FakeClient(name="healthy")
        clients = [dead, healthy]

        rep = Reporter(
            registry,
            0.02,
            URL,
            "metrics",
            ping_interval=0.05,
            client_factory=lambda: clients.pop(0),
        )

        await run_for(rep, 0.3)

        assert dead.closed
        assert healthy.write.await_count >= 1

    @pytest.mark.asyncio
    async def test_initial_client_failure_aborts_run(self, registry):
        def factory():
            raise ConfigurationError("cannot build client")

        rep = Reporter(registry, 0.01, URL, "metrics", client_factory=factory)
        await asyncio.wait_for(rep.run(), timeout=1)
        assert not rep.supervisor.has_client


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_context_manager(self, registry):
        rep, client = make_reporter(registry, interval=0.02)
        async with rep:
            assert rep.running
            await asyncio.sleep(0.1)
        assert not rep.running
        assert client.closed
        assert client.write.await_count >= 1

    @pytest.mark.asyncio
    async def test_start_returns_false_when_client_cannot_be_built(self, registry):
        def factory():
            raise ConfigurationError("cannot build client")

        rep = Reporter(registry, 0.01, URL, "metrics", client_factory=factory)
        assert await rep.start() is False
        assert not rep.running

    @pytest.mark.asyncio
    async def test_stop_is_safe_twice(self, registry):
        rep, _ = make_reporter(registry)
        await rep.start()
        await rep.stop()
        await rep.stop()
        assert not rep.running


class TestEntryPoint:
    @pytest.mark.asyncio
    async def test_malformed_url_returns_immediately(self, registry):
        await asyncio.wait_for(
            influxdb(registry, 1, "::not-a-url::", "metrics", "user", "pass", False),
            timeout=1,
        )

    @pytest.mark.asyncio
    async def test_non_positive_interval_returns_immediately(self, registry):
        await asyncio.wait_for(influxdb(registry, 0, URL, "metrics"), timeout=1)

    @pytest.mark.asyncio
    async def test_runs_until_stopped(self, registry):
        client = FakeClient()
        stop = asyncio.Event()
        task = asyncio.create_task(
            influxdb(
                registry,
                0.02,
                URL,
                "metrics",
                stop=stop,
                ping_interval=10.0,
                client_factory=lambda: client,
            )
        )
        await asyncio.sleep(0.1)
        assert not task.done()
        stop.set()
        await asyncio.wait_for(task, timeout=2)
        assert client.write.await_count >= 1
