"""In-process metrics and a plugin that records server traffic with them."""

from __future__ import annotations

import heapq
import itertools
import logging
import math
import random
import statistics
import threading
import time
from collections.abc import Iterator, Sequence
from typing import Any, Union

from rpcplug.share.share import ContextKey

# Context key under which the server stores the request start time (ns since epoch).
START_REQUEST_CONTEXT_KEY = ContextKey("start-parse-request")

_MAX_CALL_TIME_NS = 30 * 60 * 1_000_000_000
_RESCALE_THRESHOLD = 3600.0


class Counter:
    """A thread-safe running count."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n


class Meter:
    """Counts events and reports their mean rate per second."""

    def __init__(self) -> None:
        self._count = 0
        self._start = time.monotonic()
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def rate_mean(self) -> float:
        elapsed = time.monotonic() - self._start
        if elapsed <= 0:
            return 0.0
        return self._count / elapsed


class Histogram:
    """Distribution of values kept in an exponentially decaying sample."""

    def __init__(self, reservoir_size: int = 1028, alpha: float = 0.015) -> None:
        self.reservoir_size = reservoir_size
        self.alpha = alpha
        self._count = 0
        self._heap: list[tuple[float, int, float]] = []
        self._seq = itertools.count()
        self._t0 = time.monotonic()
        self._next_rescale = self._t0 + _RESCALE_THRESHOLD
        self._lock = threading.Lock()

    def _rescale(self, now: float) -> None:
        factor = math.exp(-self.alpha * (now - self._t0))
        self._heap = [(p * factor, seq, v) for p, seq, v in self._heap]
        heapq.heapify(self._heap)
        self._t0 = now
        self._next_rescale = now + _RESCALE_THRESHOLD

    def update(self, value: float) -> None:
        with self._lock:
            now = time.monotonic()
            if now > self._next_rescale:
                self._rescale(now)
            self._count += 1
            priority = math.exp(self.alpha * (now - self._t0)) / (1.0 - random.random())
            item = (priority, next(self._seq), value)
            if len(self._heap) < self.reservoir_size:
                heapq.heappush(self._heap, item)
            elif priority > self._heap[0][0]:
                heapq.heapreplace(self._heap, item)

    def values(self) -> list[float]:
        with self._lock:
            return [v for _, _, v in self._heap]

    @property
    def count(self) -> int:
        return self._count

    @property
    def min(self) -> float:
        return min(self.values(), default=0)

    @property
    def max(self) -> float:
        return max(self.values(), default=0)

    @property
    def mean(self) -> float:
        values = self.values()
        return statistics.fmean(values) if values else 0.0

    @property
    def stddev(self) -> float:
        values = self.values()
        return statistics.pstdev(values) if values else 0.0

    def percentiles(self, ps: Sequence[float]) -> list[float]:
        """Return the sample value at each fraction in ``ps`` (0..1)."""
        values = sorted(self.values())
        if not values:
            return [0.0 for _ in ps]
        size = len(values)
        result = []
        for p in ps:
            pos = p * (size + 1)
            if pos < 1:
                result.append(float(values[0]))
            elif pos >= size:
                result.append(float(values[-1]))
            else:
                lower = values[int(pos) - 1]
                upper = values[int(pos)]
                result.append(lower + (pos - math.floor(pos)) * (upper - lower))
        return result


Metric = Union[Counter, Meter, Histogram]


class MetricsRegistry:
    """Named metrics, created on first use."""

    def __init__(self) -> None:
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def _get_or_register(self, name: str, kind: type) -> Any:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = kind()
                self._metrics[name] = metric
            elif not isinstance(metric, kind):
                raise TypeError(
                    f"metric {name!r} is a {type(metric).__name__}, not a {kind.__name__}"
                )
            return metric

    def get_or_register_counter(self, name: str) -> Counter:
        return self._get_or_register(name, Counter)

    def get_or_register_meter(self, name: str) -> Meter:
        return self._get_or_register(name, Meter)

    def get_or_register_histogram(self, name: str) -> Histogram:
        return self._get_or_register(name, Histogram)

    def each(self) -> Iterator[tuple[str, Metric]]:
        """Yield ``(name, metric)`` pairs in registration order."""
        with self._lock:
            items = list(self._metrics.items())
        yield from items


def _describe(registry: MetricsRegistry) -> Iterator[str]:
    for name, metric in registry.each():
        if isinstance(metric, Counter):
            yield f"counter {name}"
            yield f"  count:       {metric.count:9d}"
        elif isinstance(metric, Meter):
            yield f"meter {name}"
            yield f"  count:       {metric.count:9d}"
            yield f"  mean rate:   {metric.rate_mean():12.2f}"
        elif isinstance(metric, Histogram):
            ps = metric.percentiles([0.5, 0.75, 0.95, 0.99, 0.999])
            yield f"histogram {name}"
            yield f"  count:       {metric.count:9d}"
            yield f"  min:         {metric.min:9d}" if isinstance(metric.min, int) else f"  min:         {metric.min:12.2f}"
            yield f"  max:         {metric.max:9d}" if isinstance(metric.max, int) else f"  max:         {metric.max:12.2f}"
            yield f"  mean:        {metric.mean:12.2f}"
            yield f"  stddev:      {metric.stddev:12.2f}"
            for label, value in zip(("median", "75%", "95%", "99%", "99.9%"), ps):
                yield f"  {label + ':':<13}{value:12.2f}"


class MetricsPlugin:
    """Records services registered, connections and per-method request traffic."""

    def __init__(self, registry: MetricsRegistry | None = None, prefix: str = "") -> None:
        self.registry = registry if registry is not None else MetricsRegistry()
        self.prefix = prefix

    def _name(self, name: str) -> str:
        return self.prefix + name

    def register(self, name: str, rcvr: Any, metadata: str) -> None:
        self.registry.get_or_register_counter(self._name("serviceCounter")).inc(1)

    def handle_conn_accept(self, conn: Any) -> tuple[Any, bool]:
        self.registry.get_or_register_meter(self._name("clientMeter")).mark(1)
        return conn, True

    def pre_read_request(self, ctx: Any) -> None:
        return None

    def post_read_request(self, ctx: Any, request: Any, error: Any) -> None:
        path = request.service_path
        if not path:
            return
        name = f"service.{path}.{request.service_method}.Read_Qps"
        self.registry.get_or_register_meter(self._name(name)).mark(1)

    def post_write_response(
        self, ctx: Any, request: Any, response: Any, error: Any
    ) -> None:
        path = response.service_path
        if not path:
            return
        base = f"service.{path}.{response.service_method}"
        self.registry.get_or_register_meter(self._name(base + ".Write_Qps")).mark(1)

        started = ctx.value(START_REQUEST_CONTEXT_KEY) if ctx is not None else None
        if not isinstance(started, int) or started <= 0:
            return
        elapsed = time.time_ns() - started
        if elapsed < _MAX_CALL_TIME_NS:
            self.registry.get_or_register_histogram(
                self._name(base + ".CallTime")
            ).update(elapsed)

    def log(self, freq: float, logger: Any = None) -> threading.Event:
        """Log every metric each ``freq`` seconds; set the returned event to stop."""
        target = logger if logger is not None else logging.getLogger(__name__)
        stop = threading.Event()

        def run() -> None:
            while not stop.wait(freq):
                for line in _describe(self.registry):
                    target.info(line)

        threading.Thread(target=run, name="metrics-log", daemon=True).start()
        return stop