"""
Pytest configuration and fixtures for metrics-reporter.

Provides cross-platform event loop configuration, fake instruments and a
scriptable fake InfluxDB client.
"""

import asyncio
import sys
from dataclasses import dataclass, field
from typing import List
from unittest.mock import AsyncMock

import pytest

from influx_client import RetryableError
from metrics_reporter import MetricsRegistry
from metrics_reporter.instruments import MetricKind, MeterSnapshot, TimerSnapshot

# Set policy *before* pytest-asyncio creates any loops
if sys.platform.startswith("win"):
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture
def registry():
    """A fresh, empty registry."""
    return MetricsRegistry()


@dataclass
class FakeTimer:
    """Timer with fixed statistics (nanoseconds) and rates."""

    snap: TimerSnapshot
    kind: MetricKind = MetricKind.TIMER

    def snapshot(self) -> TimerSnapshot:
        return self.snap


@dataclass
class FakeMeter:
    snap: MeterSnapshot
    kind: MetricKind = MetricKind.METER

    def snapshot(self) -> MeterSnapshot:
        return self.snap


class UnknownInstrument:
    """An instrument kind the reporter does not know."""

    kind = "exponentially_decaying_thing"

    def value(self) -> int:
        return 7


@pytest.fixture
def latency_timer():
    """Timer "latency": count=10, min=1ms, max=5ms, mean=2.5ms, m1=0.5/s."""
    return FakeTimer(
        TimerSnapshot(
            count=10,
            min=1_000_000,
            max=5_000_000,
            mean=2_500_000.0,
            stddev=1_000_000.0,
            variance=2_000_000.0,
            values=(1_000_000, 2_000_000, 2_000_000, 3_000_000, 5_000_000),
            rate1=0.5,
            rate5=0.4,
            rate15=0.3,
            rate_mean=0.25,
        )
    )


@dataclass
class FakeClient:
    """Scriptable stand-in for InfluxClient.

    ``ping_outcomes`` is consumed one entry per ping: True succeeds, False
    raises RetryableError. Once exhausted, pings succeed.
    """

    name: str = "client"
    ping_outcomes: List[bool] = field(default_factory=list)
    write: AsyncMock = field(default_factory=lambda: AsyncMock(return_value=0))
    closed: bool = False
    pings: int = 0

    async def ping(self):
        self.pings += 1
        ok = self.ping_outcomes.pop(0) if self.ping_outcomes else True
        if not ok:
            raise RetryableError(f"{self.name}: connection refused")
        return 0.001, "1.8.10"

    async def close(self) -> None:
        self.closed = True
