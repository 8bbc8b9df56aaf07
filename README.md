# parquetgw

A query layer for time series data kept as day-aligned blocks, each made of one
or more shards. A `DB` merges label names, label values and series from every
block that overlaps a query's time range into one answer, carries warnings
along with the results, and hands shared quotas down to the shards.

It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `parquetgw.util`: day arithmetic (`begin_of_day`, `end_of_day`, `split_days`),
  closed-interval helpers (`intersects`, `contains`, `intersection`) and
  `sort_unique`.
- `parquetgw.encoding`: the varint label-column index format
  (`encode_label_column_index`, `decode_label_column_index`) and
  `zigzag_encode` / `zigzag_decode`.
- `parquetgw.limits`: `Quota` (a budget of units; `0` means unlimited),
  `Semaphore` (usable as a context manager; `0` means unlimited),
  `ResourceExhausted` and `is_resource_exhausted`, which also looks through an
  exception's cause and context.
- `parquetgw.notices`: `Annotations`, the warnings returned with a result, and
  the warnings `TRUNCATED_RESPONSE`,
  `DROPPED_SERIES_AFTER_EXTERNAL_LABEL_MANGLING` and
  `DROPPED_LABEL_VALUES_AFTER_EXTERNAL_LABEL_MANGLING`.
- `parquetgw.labels`: `Labels` (sorted, immutable), `from_strings`, `from_map`,
  `compare`, `MatchType` and `Matcher` (equality or fully anchored regular
  expressions).
- `parquetgw.iterator`: `ListChunk`, an in-memory chunk of float samples, and
  the iterators that chain chunks (`ChunkSeriesIterator`) and clip them to a
  time range (`BoundedSeriesIterator`); `ChunkSeries` puts them together.
- `parquetgw.seriesset`: `SelectHints`, `LabelHints`, `ConcatSeriesSet`,
  `ErrSeriesSet`, `WarningsSeriesSet`, `LazySeriesSet` (runs a select on a
  background thread) and `merge_series_sets`, which merges sorted sets and
  joins series with equal labels. Every series set is also iterable.
- `parquetgw.shard`: `ChunkMeta`, `SeriesChunks` and
  `series_from_series_chunks`, which drops duplicate label sets and chunks
  outside the range; `matchers_to_strings`.
- `parquetgw.block`: `BlockMeta`, `Block`, `BlockQueryable`, `BlockQuerier`.
- `parquetgw.database`: `DB`, `DBQueryable`, `DBQuerier`.
- `parquetgw.bucket`: `FilesystemBucket`, an object bucket stored under a
  directory, `ObjectNotFound`, and `BucketReaderAt` for exact-length range reads.
- `parquetgw.discover`: `parse_tsdb_meta`, `TSDBMeta` and `TSDBDiscoverer`,
  which tracks complete, raw-resolution blocks that carry a `meta.json` and no
  `deletion-mark.json`, optionally filtered by external-label matchers and a
  minimum age.
- `parquetgw.filter`: `AllMetasFilter` and `ThanosBackfillMetaFilter`, which
  hides blocks lying inside a time range served elsewhere.
- `parquetgw.metrics`: in-process `Gauge`, `Counter`, `Histogram`, `MetricVec`
  and `Registry`, the metrics of the query and discovery paths, and
  `register_db_metrics` / `register_locate_metrics`.

## Examples

Days, encoding and quotas:

```python
from datetime import datetime, timezone

from parquetgw.util import begin_of_day, split_days
from parquetgw.encoding import encode_label_column_index, decode_label_column_index
from parquetgw.limits import Quota, is_resource_exhausted

start = begin_of_day(datetime(2024, 1, 1, 15, 30, tzinfo=timezone.utc))
end = begin_of_day(datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc))
assert len(split_days(start, end)) == 3

assert decode_label_column_index(encode_label_column_index([3, 1, 2])) == [1, 2, 3]

quota = Quota(100)
quota.reserve(60)
try:
    quota.reserve(60)
except Exception as err:
    assert is_resource_exhausted(err)
```

Series clipped to a time range:

```python
from parquetgw.iterator import ListChunk, ValueType
from parquetgw.labels import from_strings
from parquetgw.shard import ChunkMeta, SeriesChunks, series_from_series_chunks

chunk = ListChunk([(0, 1.0), (10, 2.0), (20, 3.0)])
series, dropped = series_from_series_chunks(
    [SeriesChunks(from_strings("__name__", "foo"), [ChunkMeta(0, 20, chunk)])],
    mint=5,
    maxt=20,
)
it = series[0].iterator()
samples = []
while it.next() != ValueType.NONE:
    samples.append(it.at())
assert samples == [(10, 2.0), (20, 3.0)] and not dropped
```

Discovering blocks in a directory:

```python
from parquetgw.bucket import FilesystemBucket
from parquetgw.discover import TSDBDiscoverer
from parquetgw.labels import Matcher, MatchType

discoverer = TSDBDiscoverer(
    FilesystemBucket("/var/lib/blocks"),
    external_label_matchers=[Matcher(MatchType.EQUAL, "cluster", "eu-1")],
)
discoverer.discover()
print(sorted(discoverer.metas()))
```

## What it does not do

- It does not read shard files. A `Block` is given shard objects that provide
  `queryable(...)`; the package itself ships no shard that loads label or
  chunk data from storage, so a `DB` answers only what such shards return.
- It has no syncer that turns discovered metas into blocks; `DB` takes any
  object with a `blocks()` method.
- Only TSDB block metas (`meta.json`) are discovered.
- `ThanosBackfillMetaFilter.update` is given the served time range; the filter
  does not fetch it over the network.
- There is no command, server or HTTP/gRPC API, and the metrics are kept in
  process only, with no exporter.