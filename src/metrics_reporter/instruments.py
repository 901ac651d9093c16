"""
In-process metric instruments.

Every instrument is safe to update from any thread and carries a ``kind``
tag the snapshot translator dispatches on. Reads are point-in-time per
instrument; nothing is atomic across instruments.
"""

from __future__ import annotations

import math
import random
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Iterator, List, Optional, Sequence

RESERVOIR_SIZE = 1028
TICK_INTERVAL_SEC = 5.0


class MetricKind(str, Enum):
    """Instrument kinds understood by the reporter."""

    COUNTER = "counter"
    GAUGE = "gauge"
    FLOAT_GAUGE = "float_gauge"
    HISTOGRAM = "histogram"
    METER = "meter"
    TIMER = "timer"


def sample_percentiles(sorted_values: Sequence[float], ps: Sequence[float]) -> List[float]:
    """Percentiles over a sorted sample, interpolating between neighbours."""
    scores = [0.0] * len(ps)
    n = len(sorted_values)
    if n == 0:
        return scores
    for i, p in enumerate(ps):
        pos = p * (n + 1)
        if pos < 1.0:
            scores[i] = float(sorted_values[0])
        elif pos >= n:
            scores[i] = float(sorted_values[-1])
        else:
            lower = float(sorted_values[int(pos) - 1])
            upper = float(sorted_values[int(pos)])
            scores[i] = lower + (pos - math.floor(pos)) * (upper - lower)
    return scores


# --- Counter / gauges ---


class Counter:
    kind: ClassVar[MetricKind] = MetricKind.COUNTER

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += int(n)

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= int(n)

    def clear(self) -> None:
        with self._lock:
            self._count = 0

    def count(self) -> int:
        return self._count


class Gauge:
    kind: ClassVar[MetricKind] = MetricKind.GAUGE

    def __init__(self, value: int = 0) -> None:
        self._value = int(value)

    def update(self, value: int) -> None:
        self._value = int(value)

    def value(self) -> int:
        return self._value


class FloatGauge:
    kind: ClassVar[MetricKind] = MetricKind.FLOAT_GAUGE

    def __init__(self, value: float = 0.0) -> None:
        self._value = float(value)

    def update(self, value: float) -> None:
        self._value = float(value)

    def value(self) -> float:
        return self._value


# --- Histogram ---


@dataclass(frozen=True)
class HistogramSnapshot:
    count: int
    min: int
    max: int
    mean: float
    stddev: float
    variance: float
    values: tuple  # sorted sample

    def percentile(self, p: float) -> float:
        return sample_percentiles(self.values, [p])[0]

    def percentiles(self, ps: Sequence[float]) -> List[float]:
        return sample_percentiles(self.values, ps)


class Histogram:
    """
    Distribution of integer values over a uniform reservoir sample.

    ``count`` is the total number of updates; the statistics and percentiles
    describe the retained sample (at most ``reservoir_size`` values).
    """

    kind: ClassVar[MetricKind] = MetricKind.HISTOGRAM

    def __init__(self, reservoir_size: int = RESERVOIR_SIZE, rng: Optional[random.Random] = None):
        if reservoir_size <= 0:
            raise ValueError("reservoir_size must be > 0")
        self._size = reservoir_size
        self._rng = rng or random.Random()
        self._values: List[int] = []
        self._count = 0
        self._lock = threading.Lock()

    def update(self, value: int) -> None:
        value = int(value)
        with self._lock:
            self._count += 1
            if len(self._values) < self._size:
                self._values.append(value)
            else:
                r = self._rng.randrange(self._count)
                if r < self._size:
                    self._values[r] = value

    def clear(self) -> None:
        with self._lock:
            self._values = []
            self._count = 0

    def snapshot(self) -> HistogramSnapshot:
        with self._lock:
            count = self._count
            values = sorted(self._values)
        if not values:
            return HistogramSnapshot(count, 0, 0, 0.0, 0.0, 0.0, ())
        n = len(values)
        mean = sum(values) / n
        variance = sum((v - mean) ** 2 for v in values) / n
        return HistogramSnapshot(
            count=count,
            min=values[0],
            max=values[-1],
            mean=mean,
            stddev=math.sqrt(variance),
            variance=variance,
            values=tuple(values),
        )

    def count(self) -> int:
        return self._count

    def min(self) -> int:
        return self.snapshot().min

    def max(self) -> int:
        return self.snapshot().max

    def mean(self) -> float:
        return self.snapshot().mean

    def stddev(self) -> float:
        return self.snapshot().stddev

    def variance(self) -> float:
        return self.snapshot().variance

    def percentile(self, p: float) -> float:
        return self.snapshot().percentile(p)

    def percentiles(self, ps: Sequence[float]) -> List[float]:
        return self.snapshot().percentiles(ps)


# --- Meter ---


class EWMA:
    """Exponentially weighted moving average of a per-second rate."""

    def __init__(self, minutes: float, tick_interval: float = TICK_INTERVAL_SEC):
        self.alpha = 1.0 - math.exp(-tick_interval / 60.0 / minutes)
        self._interval = tick_interval
        self._uncounted = 0
        self._rate = 0.0
        self._initialized = False

    def update(self, n: int) -> None:
        self._uncounted += n

    def tick(self) -> None:
        instant = self._uncounted / self._interval
        self._uncounted = 0
        if self._initialized:
            self._rate += self.alpha * (instant - self._rate)
        else:
            self._rate = instant
            self._initialized = True

    def rate(self) -> float:
        return self._rate


@dataclass(frozen=True)
class MeterSnapshot:
    count: int
    rate1: float
    rate5: float
    rate15: float
    rate_mean: float


class Meter:
    """
    Event rate with 1, 5 and 15 minute moving averages and the overall mean.

    Averages advance in fixed 5 second ticks, applied lazily whenever the
    meter is marked or read.
    """

    kind: ClassVar[MetricKind] = MetricKind.METER

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._start = clock()
        self._last_tick = self._start
        self._count = 0
        self._m1 = EWMA(1)
        self._m5 = EWMA(5)
        self._m15 = EWMA(15)
        self._lock = threading.Lock()

    def _tick_if_necessary(self) -> None:
        age = self._clock() - self._last_tick
        if age < TICK_INTERVAL_SEC:
            return
        ticks = int(age // TICK_INTERVAL_SEC)
        self._last_tick += ticks * TICK_INTERVAL_SEC
        for _ in range(ticks):
            self._m1.tick()
            self._m5.tick()
            self._m15.tick()

    def mark(self, n: int = 1) -> None:
        n = int(n)
        with self._lock:
            self._tick_if_necessary()
            self._count += n
            self._m1.update(n)
            self._m5.update(n)
            self._m15.update(n)

    def snapshot(self) -> MeterSnapshot:
        with self._lock:
            self._tick_if_necessary()
            elapsed = self._clock() - self._start
            mean = self._count / elapsed if elapsed > 0 else 0.0
            return MeterSnapshot(
                count=self._count,
                rate1=self._m1.rate(),
                rate5=self._m5.rate(),
                rate15=self._m15.rate(),
                rate_mean=mean,
            )

    def count(self) -> int:
        return self._count

    def rate1(self) -> float:
        return self.snapshot().rate1

    def rate5(self) -> float:
        return self.snapshot().rate5

    def rate15(self) -> float:
        return self.snapshot().rate15

    def rate_mean(self) -> float:
        return self.snapshot().rate_mean


# --- Timer ---


@dataclass(frozen=True)
class TimerSnapshot:
    """Duration statistics in nanoseconds plus call rates per second."""

    count: int
    min: int
    max: int
    mean: float
    stddev: float
    variance: float
    values: tuple
    rate1: float
    rate5: float
    rate15: float
    rate_mean: float

    def percentiles(self, ps: Sequence[float]) -> List[float]:
        return sample_percentiles(self.values, ps)


class Timer:
    """Histogram of durations (nanoseconds) combined with a meter of calls."""

    kind: ClassVar[MetricKind] = MetricKind.TIMER

    def __init__(
        self,
        reservoir_size: int = RESERVOIR_SIZE,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self._histogram = Histogram(reservoir_size, rng=rng)
        self._meter = Meter(clock=clock)

    def update(self, duration_ns: int) -> None:
        self._histogram.update(int(duration_ns))
        self._meter.mark(1)

    def update_since(self, start_ns: int) -> None:
        """Record the time elapsed since a ``time.perf_counter_ns()`` reading."""
        self.update(time.perf_counter_ns() - start_ns)

    @contextmanager
    def time(self) -> Iterator[None]:
        start = time.perf_counter_ns()
        try:
            yield
        finally:
            self.update_since(start)

    def snapshot(self) -> TimerSnapshot:
        h = self._histogram.snapshot()
        m = self._meter.snapshot()
        return TimerSnapshot(
            count=h.count,
            min=h.min,
            max=h.max,
            mean=h.mean,
            stddev=h.stddev,
            variance=h.variance,
            values=h.values,
            rate1=m.rate1,
            rate5=m.rate5,
            rate15=m.rate15,
            rate_mean=m.rate_mean,
        )

    def count(self) -> int:
        return self._histogram.count()

    def percentiles(self, ps: Sequence[float]) -> List[float]:
        return self._histogram.percentiles(ps)
