import pytest

from parquetgw import metrics
from parquetgw.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricVec,
    Registry,
    exponential_buckets_range,
    register_db_metrics,
    register_locate_metrics,
)


def test_exponential_buckets_range_spans_bounds():
    buckets = exponential_buckets_range(0.1, 30, 20)
    assert len(buckets) == 20
    assert buckets[0] == pytest.approx(0.1)
    assert buckets[-1] == pytest.approx(30)
    assert all(a < b for a, b in zip(buckets, buckets[1:]))


def test_exponential_buckets_range_single():
    assert exponential_buckets_range(2.0, 8.0, 1) == [2.0]


@pytest.mark.parametrize("low, count", [(0.1, 0), (0.0, 3), (-1.0, 3)])
def test_exponential_buckets_range_invalid(low, count):
    with pytest.raises(ValueError):
        exponential_buckets_range(low, 10.0, count)


def test_counter_add_and_inc():
    c = Counter("c")
    c.add(2.5)
    c.inc()
    assert c.value == pytest.approx(3.5)


def test_counter_rejects_negative():
    with pytest.raises(ValueError):
        Counter().add(-1)


def test_gauge_set_and_inc():
    g = Gauge()
    g.set(7)
    g.inc()
    assert g.value == 8.0


def test_gauge_set_to_current_time(monkeypatch):
    monkeypatch.setattr(metrics.time, "time", lambda: 1234.5)
    g = Gauge()
    g.set_to_current_time()
    assert g.value == 1234.5


def test_histogram_observe():
    h = Histogram(buckets=[1.0, 2.0])
    for v in (0.5, 1.0, 1.5, 5.0):
        h.observe(v)
    assert h.count == 4
    assert h.sum == pytest.approx(8.0)
    assert h.cumulative_counts() == [(1.0, 2), (2.0, 3), (float("inf"), 4)]


def test_histogram_rejects_unordered_buckets():
    with pytest.raises(ValueError):
        Histogram(buckets=[2.0, 1.0])


def test_metric_vec_reuses_children():
    vec = MetricVec("v", "help", ("a", "b"), Gauge)
    child = vec.with_label_values("x", "y")
    assert vec.with_label_values("x", "y") is child
    assert vec.with_label_values("x", "z") is not child
    assert set(vec.children()) == {("x", "y"), ("x", "z")}


def test_metric_vec_wrong_cardinality():
    vec = MetricVec("v", "help", ("a",), Gauge)
    with pytest.raises(ValueError):
        vec.with_label_values("x", "y")


def test_registry_rejects_duplicates():
    reg = Registry()
    reg.register(Counter("dup"))
    with pytest.raises(ValueError):
        reg.register(Gauge("dup"))
    assert len(reg) == 1


def test_registry_rejects_unnamed():
    with pytest.raises(ValueError):
        Registry().register(Gauge())


def test_register_db_metrics():
    reg = Registry()
    hist = metrics.queryable_operations_duration.with_label_values(metrics.TYPE_SELECT, metrics.WHERE_SHARD)
    before = hist.count
    metrics.queryable_operations_total.with_label_values(metrics.TYPE_SELECT, metrics.WHERE_SHARD).set(9)
    register_db_metrics(reg)
    assert "queryable_operations_total" in reg
    assert "queryable_operations_seconds" in reg
    assert hist.count == before + 1
    assert metrics.queryable_operations_total.with_label_values(metrics.TYPE_SELECT, metrics.WHERE_SHARD).value == 0


def test_register_db_metrics_twice_fails():
    reg = Registry()
    register_db_metrics(reg)
    with pytest.raises(ValueError):
        register_db_metrics(reg)


def test_register_locate_metrics():
    reg = Registry()
    metrics.sync_min_time.with_label_values(metrics.WHAT_SYNCER).set(5)
    before = metrics.bucket_requests.value
    register_locate_metrics(reg)
    for name in (
        "bucket_requests_total",
        "sync_min_time_unix_seconds",
        "sync_max_time_unix_seconds",
        "sync_last_successful_update_time_unix_seconds",
        "sync_corrupted_label_parquet_files_total",
    ):
        assert name in reg
    assert metrics.sync_min_time.with_label_values(metrics.WHAT_SYNCER).value == 0
    assert metrics.bucket_requests.value == before
    with pytest.raises(ValueError):
        register_locate_metrics(reg)