"""Minimal metric types and the metrics of the query and sync paths."""

from __future__ import annotations

import bisect
import threading
import time
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Generic, TypeVar

TYPE_SELECT = "select"
TYPE_LABEL_VALUES = "label_values"
TYPE_LABEL_NAMES = "label_names"

# To keep cardinality low, operations are only measured per shard.
WHERE_SHARD = "shard"

WHAT_SYNCER = "syncer"
WHAT_DISCOVERER = "discoverer"
WHAT_TSDB_DISCOVERER = "tsdb_discoverer"

DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def exponential_buckets_range(low: float, high: float, count: int) -> list[float]:
    """``count`` bucket bounds growing exponentially from ``low`` to ``high``."""
    if count < 1:
        raise ValueError("exponential buckets range needs a positive count")
    if low <= 0:
        raise ValueError("exponential buckets range minimum needs to be greater than 0")
    if count == 1:
        return [low]
    factor = (high / low) ** (1.0 / (count - 1))
    return [low * factor**i for i in range(count)]


class Gauge:
    """A value that can go up and down."""

    def __init__(self, name: str = "", help: str = "") -> None:
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def inc(self) -> None:
        with self._lock:
            self._value += 1.0

    def set_to_current_time(self) -> None:
        self.set(time.time())


class Counter:
    """A value that only goes up."""

    def __init__(self, name: str = "", help: str = "") -> None:
        self.name = name
        self.help = help
        self._value = 0.0
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def add(self, value: float) -> None:
        if value < 0:
            raise ValueError("counter cannot decrease in value")
        with self._lock:
            self._value += value

    def inc(self) -> None:
        self.add(1.0)


class Histogram:
    """Counts observations into buckets with inclusive upper bounds."""

    def __init__(self, name: str = "", help: str = "", buckets: Iterable[float] = DEFAULT_BUCKETS) -> None:
        bounds = tuple(float(b) for b in buckets)
        if any(b >= n for b, n in zip(bounds, bounds[1:])):
            raise ValueError("histogram buckets must be in increasing order")
        self.name = name
        self.help = help
        self.buckets = bounds
        self._counts = [0] * (len(bounds) + 1)
        self._sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float) -> None:
        idx = bisect.bisect_left(self.buckets, value)
        with self._lock:
            self._counts[idx] += 1
            self._sum += value

    @property
    def count(self) -> int:
        with self._lock:
            return sum(self._counts)

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum

    def cumulative_counts(self) -> list[tuple[float, int]]:
        """Pairs of upper bound and number of observations at or below it."""
        with self._lock:
            counts = list(self._counts)
        bounds = (*self.buckets, float("inf"))
        total = 0
        result = []
        for bound, n in zip(bounds, counts):
            total += n
            result.append((bound, total))
        return result


M = TypeVar("M")


class MetricVec(Generic[M]):
    """A family of metrics told apart by the values of a fixed set of labels."""

    def __init__(self, name: str, help: str, label_names: Sequence[str], factory: Callable[[], M]) -> None:
        self.name = name
        self.help = help
        self.label_names = tuple(label_names)
        self._factory = factory
        self._children: dict[tuple[str, ...], M] = {}
        self._lock = threading.Lock()

    def with_label_values(self, *args: str) -> M:
        """The child for these label values, created on first use."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"inconsistent label cardinality: expected {len(self.label_names)} "
                f"label values but got {len(args)} in {args!r}"
            )
        with self._lock:
            child = self._children.get(args)
            if child is None:
                child = self._children[args] = self._factory()
            return child

    def children(self) -> dict[tuple[str, ...], M]:
        with self._lock:
            return dict(self._children)


class Registry:
    """Holds metrics by name."""

    def __init__(self) -> None:
        self._metrics: dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, metric: Any) -> None:
        name = getattr(metric, "name", "")
        if not name:
            raise ValueError("metric has no name")
        with self._lock:
            if name in self._metrics:
                raise ValueError(f"duplicate metrics collector registration attempted: {name}")
            self._metrics[name] = metric

    def get(self, name: str) -> Any:
        with self._lock:
            return self._metrics[name]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._metrics

    def __len__(self) -> int:
        with self._lock:
            return len(self._metrics)


def _register_all(registry: Registry, metrics: Iterable[Any]) -> None:
    problems = []
    for metric in metrics:
        try:
            registry.register(metric)
        except ValueError as err:
            problems.append(str(err))
    if problems:
        raise ValueError("\n".join(problems))


_QUERY_DURATION_BUCKETS = tuple(exponential_buckets_range(0.1, 30, 20))

queryable_operations_total: MetricVec[Gauge] = MetricVec(
    "queryable_operations_total",
    "The total amount of query operations we evaluated",
    ("type", "where"),
    Gauge,
)
queryable_operations_duration: MetricVec[Histogram] = MetricVec(
    "queryable_operations_seconds",
    "Histogram of durations for queryable operations",
    ("type", "where"),
    lambda: Histogram(buckets=_QUERY_DURATION_BUCKETS),
)

bucket_requests = Counter("bucket_requests_total", "Total amount of requests to object storage")
sync_min_time: MetricVec[Gauge] = MetricVec(
    "sync_min_time_unix_seconds", "The minimum timestamp that syncer knows", ("what",), Gauge
)
sync_max_time: MetricVec[Gauge] = MetricVec(
    "sync_max_time_unix_seconds", "The minimum timestamp that syncer knows", ("what",), Gauge
)
sync_last_successful_time: MetricVec[Gauge] = MetricVec(
    "sync_last_successful_update_time_unix_seconds",
    "The timestamp we last synced successfully",
    ("what",),
    Gauge,
)
sync_corrupted_label_file = Counter(
    "sync_corrupted_label_parquet_files_total",
    "The amount of corrupted label parquet files we encountered",
)


def register_db_metrics(registry: Registry) -> None:
    """Initialise and register the query metrics; raises if any registration fails."""
    for kind in (TYPE_SELECT, TYPE_LABEL_NAMES, TYPE_LABEL_VALUES):
        for where in (WHERE_SHARD,):
            queryable_operations_total.with_label_values(kind, where).set(0)
            queryable_operations_duration.with_label_values(kind, where).observe(0)
    _register_all(registry, (queryable_operations_total, queryable_operations_duration))


def register_locate_metrics(registry: Registry) -> None:
    """Initialise and register the sync metrics; raises if any registration fails."""
    bucket_requests.add(0)
    for what in (WHAT_SYNCER, WHAT_DISCOVERER, WHAT_TSDB_DISCOVERER):
        sync_min_time.with_label_values(what).set(0)
        sync_max_time.with_label_values(what).set(0)
        sync_last_successful_time.with_label_values(what).set(0)
    _register_all(
        registry,
        (bucket_requests, sync_min_time, sync_max_time, sync_last_successful_time, sync_corrupted_label_file),
    )