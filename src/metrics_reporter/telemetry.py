"""
Prometheus metrics describing the reporter itself.

Registered on the global prometheus REGISTRY; import this module at app
startup to expose them.
"""

from prometheus_client import Counter, Histogram

REPORTER_EMISSIONS_TOTAL = Counter(
    "metrics_reporter_emissions_total",
    "Emission cycles by outcome",
    ["outcome"],
)

REPORTER_POINTS_WRITTEN_TOTAL = Counter(
    "metrics_reporter_points_written_total",
    "Points accepted by InfluxDB",
)

REPORTER_WRITE_LATENCY_MS = Histogram(
    "metrics_reporter_write_latency_ms",
    "InfluxDB write latency in milliseconds",
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000],
)

REPORTER_PINGS_TOTAL = Counter(
    "metrics_reporter_pings_total",
    "Health pings by outcome",
    ["outcome"],
)

REPORTER_RECONNECTS_TOTAL = Counter(
    "metrics_reporter_reconnects_total",
    "Client rebuilds after a failed ping, by outcome",
    ["outcome"],
)
