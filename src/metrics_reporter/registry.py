"""
Named metric registry shared by the host process and the reporter.

The host registers and updates instruments from any thread; the reporter
borrows a point-in-time copy of the entries once per emission.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from loguru import logger

T = TypeVar("T")


class DuplicateMetric(KeyError):
    """A metric with this name is already registered."""

    pass


class MetricsRegistry:
    """Thread-safe mapping of metric name to instrument.

    Example:
        registry = MetricsRegistry()
        requests = registry.get_or_register("requests", Counter)
        requests.inc()

        for name, instrument in registry.items():
            ...
    """

    def __init__(self) -> None:
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, name: str, metric: Any) -> None:
        with self._lock:
            if name in self._metrics:
                raise DuplicateMetric(name)
            self._metrics[name] = metric

    def get(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._metrics.get(name)

    def get_or_register(self, name: str, factory: Callable[[], T]) -> T:
        """Return the metric registered under ``name``, creating it if absent."""
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
            return metric

    def unregister(self, name: str) -> None:
        """Remove a metric; no-op if absent."""
        with self._lock:
            self._metrics.pop(name, None)

    def unregister_all(self) -> None:
        with self._lock:
            self._metrics.clear()

    def items(self) -> List[Tuple[str, Any]]:
        """Point-in-time copy of all (name, instrument) pairs."""
        with self._lock:
            return list(self._metrics.items())

    def each(self, fn: Callable[[str, Any], None]) -> None:
        for name, metric in self.items():
            fn(name, metric)

    def __iter__(self) -> Iterator[str]:
        return iter([name for name, _ in self.items()])

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._metrics


# --- Singleton accessor for in-process use ---

_registry: Optional[MetricsRegistry] = None


def default_registry() -> MetricsRegistry:
    """Get the process-wide registry.

    Returns the same instance on all calls.
    """
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
        logger.debug("MetricsRegistry singleton initialized")
    return _registry
