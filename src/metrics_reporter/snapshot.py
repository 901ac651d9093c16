"""Translate a metrics registry snapshot into InfluxDB points."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from influx_client.models import Point

from .instruments import MetricKind

PERCENTILES = (0.5, 0.75, 0.95, 0.99, 0.999, 0.9999)
PERCENTILE_FIELDS = ("p50", "p75", "p95", "p99", "p999", "p9999")

NS_PER_MS = 1_000_000

Fields = Dict[str, Any]


def _counter(m) -> Tuple[str, Fields]:
    return "count", {"value": m.count()}


def _gauge(m) -> Tuple[str, Fields]:
    return "gauge", {"value": m.value()}


def _histogram(m) -> Tuple[str, Fields]:
    s = m.snapshot()
    fields: Fields = {
        "count": s.count,
        "max": s.max,
        "mean": s.mean,
        "min": s.min,
        "stddev": s.stddev,
        "variance": s.variance,
    }
    fields.update(zip(PERCENTILE_FIELDS, s.percentiles(PERCENTILES)))
    return "histogram", fields


def _meter(m) -> Tuple[str, Fields]:
    s = m.snapshot()
    return "meter", {
        "count": s.count,
        "m1": s.rate1,
        "m5": s.rate5,
        "m15": s.rate15,
        "mean": s.rate_mean,
    }


def _timer(m) -> Tuple[str, Fields]:
    s = m.snapshot()
    ms = float(NS_PER_MS)
    fields: Fields = {
        "count": s.count,
        "max": s.max // NS_PER_MS,
        "mean": s.mean / ms,
        "min": s.min // NS_PER_MS,
        "stddev": s.stddev / ms,
        "variance": s.variance / ms,
    }
    fields.update((k, v / ms) for k, v in zip(PERCENTILE_FIELDS, s.percentiles(PERCENTILES)))
    fields.update(
        {
            "m1": s.rate1,
            "m5": s.rate5,
            "m15": s.rate15,
            "meanrate": s.rate_mean,
        }
    )
    return "timer", fields


TRANSLATORS: Dict[MetricKind, Callable[[Any], Tuple[str, Fields]]] = {
    MetricKind.COUNTER: _counter,
    MetricKind.GAUGE: _gauge,
    MetricKind.FLOAT_GAUGE: _gauge,
    MetricKind.HISTOGRAM: _histogram,
    MetricKind.METER: _meter,
    MetricKind.TIMER: _timer,
}


def metric_kind(instrument: Any) -> Optional[MetricKind]:
    """The instrument's kind, or None when the reporter does not know it."""
    kind = getattr(instrument, "kind", None)
    try:
        return MetricKind(kind)
    except ValueError:
        return None


def translate(
    entries: Iterable[Tuple[str, Any]],
    now: datetime,
    host_prefix: str = "",
) -> List[Point]:
    """One point per known instrument, all stamped with ``now``.

    ``entries`` is a registry (or any mapping) or its ``items()``;
    instruments of unknown kind are skipped.
    """
    if hasattr(entries, "items"):
        entries = list(entries.items())
    points: List[Point] = []
    for name, instrument in entries:
        kind = metric_kind(instrument)
        if kind is None:
            continue
        suffix, fields = TRANSLATORS[kind](instrument)
        points.append(
            Point(
                measurement=f"{host_prefix}{name}.{suffix}",
                fields=fields,
                time=now,
            )
        )
    return points
