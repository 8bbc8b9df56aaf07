from parquetgw.iterator import ListChunk, ValueType
from parquetgw.labels import Matcher, MatchType, from_strings
from parquetgw.shard import (
    ChunkMeta,
    SeriesChunks,
    matchers_to_strings,
    series_from_series_chunks,
)


def samples(series):
    it = series.iterator()
    out = []
    while it.next() != ValueType.NONE:
        out.append(it.at())
    return out


def meta_for(chunk):
    return ChunkMeta(chunk.min_time, chunk.max_time, chunk)


def test_keeps_first_of_duplicate_series():
    lbls = from_strings("__name__", "foo")
    first = ListChunk([(1, 1.0), (2, 2.0)])
    second = ListChunk([(3, 3.0)])
    result, dropped = series_from_series_chunks(
        [SeriesChunks(lbls, [meta_for(first)]), SeriesChunks(lbls, [meta_for(second)])], 0, 10
    )
    assert dropped is True
    assert len(result) == 1
    assert result[0].labels == lbls
    assert samples(result[0]) == [(1, 1.0), (2, 2.0)]


def test_distinct_series_are_all_kept_in_order():
    a = from_strings("__name__", "b")
    b = from_strings("__name__", "a")
    chunk = ListChunk([(1, 1.0)])
    result, dropped = series_from_series_chunks(
        [SeriesChunks(a, [meta_for(chunk)]), SeriesChunks(b, [meta_for(chunk)])], 0, 10
    )
    assert dropped is False
    assert [s.labels for s in result] == [a, b]


def test_equal_hash_counts_as_duplicate():
    a = from_strings("x", "1")
    b = from_strings("x", "2")
    result, dropped = series_from_series_chunks(
        [SeriesChunks(a, [], labels_hash=7), SeriesChunks(b, [], labels_hash=7)], 0, 10
    )
    assert dropped is True
    assert [s.labels for s in result] == [a]


def test_chunks_outside_range_are_dropped_and_samples_bounded():
    c1 = ListChunk([(0, 1.0), (10, 2.0)])
    c2 = ListChunk([(20, 3.0), (30, 4.0)])
    c3 = ListChunk([(100, 5.0), (110, 6.0)])
    lbls = from_strings("__name__", "foo")
    result, _ = series_from_series_chunks(
        [SeriesChunks(lbls, [meta_for(c1), meta_for(c2), meta_for(c3)])], 5, 25
    )
    series = result[0]
    assert series.chunks == [c1, c2]
    assert (series.mint, series.maxt) == (5, 25)
    assert samples(series) == [(10, 2.0), (20, 3.0)]


def test_series_without_chunks_in_range_has_no_samples():
    chunk = ListChunk([(100, 1.0)])
    result, dropped = series_from_series_chunks(
        [SeriesChunks(from_strings("a", "b"), [meta_for(chunk)])], 0, 10
    )
    assert dropped is False
    assert result[0].chunks == []
    assert samples(result[0]) == []


def test_labels_hash_defaults_to_label_hash():
    lbls = from_strings("a", "b")
    assert SeriesChunks(lbls).labels_hash == hash(lbls)


def test_matchers_to_strings():
    ms = [Matcher(MatchType.EQUAL, "foo", "bar"), Matcher(MatchType.REGEXP, "job", "a.*")]
    assert matchers_to_strings(ms) == ['foo="bar"', 'job=~"a.*"']
    assert matchers_to_strings([]) == []