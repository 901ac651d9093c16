"""
Metrics Reporter

Periodically forwards the instruments of an in-process metrics registry to
InfluxDB, rebuilding the client whenever the health ping fails.

Usage:
    from metrics_reporter import MetricsRegistry, Counter, Reporter, influxdb

    registry = MetricsRegistry()
    registry.get_or_register("requests", Counter).inc()

    # run as a background task
    async with Reporter(registry, 10.0, "http://localhost:8086", "metrics"):
        ...

    # or as the terminal loop of a task
    await influxdb(registry, 10.0, "http://localhost:8086", "metrics", "user", "pass", tag_host=True)
"""

from .config import ReporterSettings, get_settings
from .instruments import (
    Counter,
    FloatGauge,
    Gauge,
    Histogram,
    Meter,
    MetricKind,
    Timer,
)
from .registry import DuplicateMetric, MetricsRegistry, default_registry
from .reporter import Reporter, Tick, influxdb
from .snapshot import translate
from .supervisor import ConnectionState, ConnectionSupervisor

__version__ = "1.0.0"
__all__ = [
    # instruments
    "MetricKind",
    "Counter",
    "Gauge",
    "FloatGauge",
    "Histogram",
    "Meter",
    "Timer",
    # registry
    "MetricsRegistry",
    "DuplicateMetric",
    "default_registry",
    # reporting
    "Reporter",
    "Tick",
    "influxdb",
    "translate",
    "ConnectionSupervisor",
    "ConnectionState",
    # config
    "ReporterSettings",
    "get_settings",
]
