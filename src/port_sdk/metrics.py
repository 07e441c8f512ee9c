"""Request pipeline counters and their Prometheus collector.

Counters are tracked in-process and only exposed when a client is given a
registry; nothing is registered on the global prometheus_client registry.
"""

import threading
from collections.abc import Iterator

from prometheus_client.core import CounterMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

COUNTERS = {
    "requests": "API calls issued through the request executor",
    "attempts": "HTTP attempts sent, including retries",
    "retries": "HTTP attempts retried after a transient failure",
    "api_errors": "API calls that ended with a non-2xx response",
    "token_refreshes": "client-credentials token exchanges",
}


class ClientMetrics:
    """Thread-safe counters for one client instance."""

    def __init__(self):
        self._lock = threading.Lock()
        self._values = dict.fromkeys(COUNTERS, 0)

    def inc(self, name: str, amount: int = 1) -> None:
        if name not in self._values:
            msg = f"unknown counter: {name}"
            raise KeyError(msg)
        with self._lock:
            self._values[name] += amount

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._values)


class ClientMetricsCollector(Collector):
    """Prometheus collector exposing a :class:`ClientMetrics` snapshot."""

    def __init__(self, metrics: ClientMetrics, prefix: str = "port_client"):
        """Initialize the collector.

        Args:
            metrics: Counters to expose.
            prefix: Metric name prefix (e.g. "port_client").
        """
        self._metrics = metrics
        self._prefix = prefix

    def collect(self) -> Iterator[Metric]:
        """Yield one counter family per tracked counter."""
        for name, value in self._metrics.snapshot().items():
            counter = CounterMetricFamily(f"{self._prefix}_{name}", COUNTERS[name])
            counter.add_metric([], value)
            yield counter
