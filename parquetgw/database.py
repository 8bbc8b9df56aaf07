"""The database: non-overlapping day blocks queried as one."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from .block import Block, Querier, _close_all, _collect_strings, _limit_of
from .iterator import INT64_MAX, INT64_MIN
from .labels import Labels, Matcher
from .limits import Quota
from .seriesset import (
    LabelHints,
    LazySeriesSet,
    SelectHints,
    SeriesSet,
    empty_series_set,
    merge_series_sets,
)
from .util import intersection, intersects

UINT64_MAX = (1 << 64) - 1


class Syncer(Protocol):
    def blocks(self) -> list[Block]: ...


class DB:
    """A horizontal partitioning into non-overlapping blocks aligned to whole days."""

    def __init__(self, syncer: Syncer, ext_labels: Labels | None = None) -> None:
        self._syncer = syncer
        self._ext_labels = ext_labels if ext_labels is not None else Labels()

    def timerange(self) -> tuple[int, int]:
        """Earliest start and latest end over all blocks.

        Without blocks this is the empty range (INT64_MAX, INT64_MIN).
        """
        mint, maxt = INT64_MAX, INT64_MIN
        for blk in self._syncer.blocks():
            bmint, bmaxt = blk.timerange()
            mint = min(mint, bmint)
            maxt = max(maxt, bmaxt)
        return mint, maxt

    def extlabels(self) -> Labels:
        return self._ext_labels

    def queryable(
        self,
        replica_label_names: Iterable[str] = (),
        chunk_bytes_quota: int = 0,
        row_count_quota: int = 0,
        partition_max_range: int = UINT64_MAX,
        partition_max_gap: int = UINT64_MAX,
        partition_max_concurrency: int = 0,
    ) -> DBQueryable:
        """A queryable over the current blocks.

        Replica labels are dropped from results so that replicas of an HA pair
        deduplicate into one view. The quotas (0 meaning unlimited) are shared by
        every query made through the returned queryable.
        """
        return DBQueryable(
            blocks=list(self._syncer.blocks()),
            ext_labels=self._ext_labels,
            replica_label_names=list(replica_label_names),
            chunk_bytes_quota=Quota(chunk_bytes_quota),
            row_count_quota=Quota(row_count_quota),
            partition_max_range=partition_max_range,
            partition_max_gap=partition_max_gap,
            partition_max_concurrency=partition_max_concurrency,
        )


@dataclass
class DBQueryable:
    """Settings fixed for a series of queries over a snapshot of blocks."""

    blocks: list[Block]
    # Added to every series in the result, overriding internal labels.
    ext_labels: Labels = field(default_factory=Labels)
    # Labels identifying replicas; dropped after external labels were applied.
    replica_label_names: list[str] = field(default_factory=list)
    # Bytes that selects may fetch from chunk columns.
    chunk_bytes_quota: Quota = field(default_factory=lambda: Quota(0))
    # Rows that selects may touch.
    row_count_quota: Quota = field(default_factory=lambda: Quota(0))
    # Largest range of chunk pages coalesced into one object storage request.
    partition_max_range: int = UINT64_MAX
    # Largest gap tolerated when coalescing nearby pages.
    partition_max_gap: int = UINT64_MAX
    # Parallel object storage requests per select.
    partition_max_concurrency: int = 0

    def querier(self, mint: int, maxt: int) -> DBQuerier:
        queriers = []
        for blk in self.blocks:
            bmint, bmaxt = blk.timerange()
            if not intersects(mint, maxt, bmint, bmaxt):
                continue
            start, end = intersection(mint, maxt, bmint, bmaxt)
            try:
                q = blk.queryable(
                    self.ext_labels,
                    self.replica_label_names,
                    self.chunk_bytes_quota,
                    self.row_count_quota,
                    self.partition_max_range,
                    self.partition_max_gap,
                    self.partition_max_concurrency,
                ).querier(start, end)
            except Exception as err:
                raise RuntimeError(f"unable to get block querier: {err}") from err
            queriers.append(q)
        return DBQuerier(mint, maxt, queriers)


class DBQuerier:
    """Queries every block that overlaps the requested range."""

    def __init__(self, mint: int, maxt: int, blocks: Sequence[Querier]) -> None:
        self.mint = mint
        self.maxt = maxt
        self._blocks = list(blocks)

    def close(self) -> None:
        _close_all(self._blocks, "block")

    def label_values(
        self, name: str, hints: LabelHints | None, *args: Matcher
    ) -> tuple[list[str], object]:
        """Sorted distinct values of ``name`` over all blocks, with warnings."""
        return _collect_strings(
            self._blocks,
            lambda q: q.label_values(name, hints, *args),
            "label values",
            "block",
            _limit_of(hints),
        )

    def label_names(self, hints: LabelHints | None, *args: Matcher) -> tuple[list[str], object]:
        """Sorted distinct label names over all blocks, with warnings."""
        return _collect_strings(
            self._blocks,
            lambda q: q.label_names(hints, *args),
            "label names",
            "block",
            _limit_of(hints),
        )

    def select(self, sorted: bool, hints: SelectHints | None, *args: Matcher) -> LazySeriesSet:
        """Series matching all matchers ``args``, selected in the background."""
        return LazySeriesSet(self._select, sorted, hints, *args)

    def _select(self, want_sorted: bool, hints: SelectHints, *matchers: Matcher) -> SeriesSet:
        # Merging several blocks vertically needs sorted inputs.
        want_sorted = want_sorted or len(self._blocks) > 1
        sets = [q.select(want_sorted, hints, *matchers) for q in self._blocks]
        if not sets:
            return empty_series_set()
        return merge_series_sets(sets, hints.limit)