import json
import time
from datetime import timedelta

import pytest

from parquetgw.bucket import FilesystemBucket
from parquetgw.discover import (
    DELETION_MARK_FILENAME,
    META_FILENAME,
    TSDBDiscoverer,
    parse_tsdb_meta,
)
from parquetgw.labels import Matcher, MatchType
from parquetgw.metrics import WHAT_DISCOVERER, sync_last_successful_time

ULID_A = "01JS0DPYGA1HPW5RBZ1KBXCNXK"
ULID_B = "01JT0DPYGA1HPW5RBZ1KBXCNXK"


def meta_doc(ulid, labels=None, min_time=0, max_time=0, resolution=0):
    return {
        "ulid": ulid,
        "minTime": min_time,
        "maxTime": max_time,
        "stats": {},
        "compaction": {"level": 0},
        "version": 0,
        "thanos": {
            "labels": labels,
            "downsample": {"resolution": resolution},
            "source": "",
        },
    }


def upload_meta(bucket, doc):
    bucket.upload(f"{doc['ulid']}/{META_FILENAME}", (json.dumps(doc) + "\n").encode())


@pytest.fixture
def bucket(tmp_path):
    return FilesystemBucket(tmp_path / "bkt")


def test_skips_blocks_not_matching(bucket):
    upload_meta(bucket, meta_doc(ULID_A, {"foo": "bar"}))
    upload_meta(bucket, meta_doc(ULID_B, {"foo": "not-bar"}))
    discoverer = TSDBDiscoverer(
        bucket, external_label_matchers=[Matcher(MatchType.NOT_EQUAL, "foo", "bar")]
    )
    discoverer.discover()
    assert list(discoverer.metas()) == [ULID_B]


def test_skips_blocks_with_deletion_markers(bucket):
    upload_meta(bucket, meta_doc(ULID_A, {"foo": "bar"}))
    bucket.upload(f"{ULID_A}/{DELETION_MARK_FILENAME}", b"")
    discoverer = TSDBDiscoverer(bucket)
    discoverer.discover()
    assert list(discoverer.metas()) == []


def test_forgets_blocks_that_are_gone(bucket):
    upload_meta(bucket, meta_doc(ULID_A))
    discoverer = TSDBDiscoverer(bucket)
    discoverer.discover()
    assert list(discoverer.metas()) == [ULID_A]

    bucket.delete(ULID_A)
    discoverer.discover()
    assert list(discoverer.metas()) == []


def test_skips_incomplete_blocks(bucket):
    bucket.upload(f"{ULID_A}/chunks/000001", b"data")
    bucket.upload(f"{ULID_A}/index", b"data")
    discoverer = TSDBDiscoverer(bucket)
    discoverer.discover()
    assert discoverer.metas() == {}


def test_skips_downsampled_blocks(bucket):
    upload_meta(bucket, meta_doc(ULID_A, resolution=300000))
    upload_meta(bucket, meta_doc(ULID_B))
    discoverer = TSDBDiscoverer(bucket, concurrency=2)
    discoverer.discover()
    assert sorted(discoverer.metas()) == [ULID_B]


def test_min_block_age(bucket):
    now_ms = int(time.time() * 1000)
    upload_meta(bucket, meta_doc(ULID_A, max_time=now_ms - 10 * 60 * 1000))
    upload_meta(bucket, meta_doc(ULID_B, max_time=0))
    discoverer = TSDBDiscoverer(bucket, min_block_age=timedelta(hours=1))
    discoverer.discover()
    assert list(discoverer.metas()) == [ULID_B]


def test_future_blocks_dropped_without_age(bucket):
    now_ms = int(time.time() * 1000)
    upload_meta(bucket, meta_doc(ULID_A, max_time=now_ms + 3600 * 1000))
    discoverer = TSDBDiscoverer(bucket)
    discoverer.discover()
    assert discoverer.metas() == {}


def test_metas_returns_copy(bucket):
    upload_meta(bucket, meta_doc(ULID_A))
    discoverer = TSDBDiscoverer(bucket)
    discoverer.discover()
    metas = discoverer.metas()
    metas.clear()
    assert list(discoverer.metas()) == [ULID_A]


def test_invalid_meta_raises(bucket):
    bucket.upload(f"{ULID_A}/{META_FILENAME}", b"{not json")
    discoverer = TSDBDiscoverer(bucket)
    with pytest.raises(RuntimeError, match=ULID_A):
        discoverer.discover()
    assert discoverer.metas() == {}


def test_discover_records_success_time(bucket):
    upload_meta(bucket, meta_doc(ULID_A))
    before = time.time()
    TSDBDiscoverer(bucket).discover()
    assert sync_last_successful_time.with_label_values(WHAT_DISCOVERER).value >= before


def test_concurrency_must_be_positive(bucket):
    with pytest.raises(ValueError):
        TSDBDiscoverer(bucket, concurrency=0)


def test_parse_tsdb_meta_fields():
    meta = parse_tsdb_meta(json.dumps(meta_doc(ULID_A, {"foo": "bar"}, 5, 9, 0)))
    assert meta.ulid == ULID_A
    assert (meta.min_time, meta.max_time) == (5, 9)
    assert dict(meta.labels) == {"foo": "bar"}
    assert meta.downsample_resolution == 0


def test_parse_tsdb_meta_normalises_ulid_case():
    assert parse_tsdb_meta(json.dumps({"ulid": ULID_A.lower()})).ulid == ULID_A


@pytest.mark.parametrize(
    "data",
    [
        b"[1, 2]",
        b"{",
        json.dumps({"ulid": "short"}),
        json.dumps({"ulid": "8" + ULID_A[1:]}),
        json.dumps({"ulid": ULID_A, "minTime": "x"}),
        json.dumps({"ulid": ULID_A, "thanos": {"labels": {"a": 1}}}),
    ],
)
def test_parse_tsdb_meta_rejects(data):
    with pytest.raises(ValueError):
        parse_tsdb_meta(data)