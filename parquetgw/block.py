"""A block: one day of data spread over several shards."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from .labels import Labels, Matcher
from .limits import Quota
from .notices import TRUNCATED_RESPONSE, Annotations
from .seriesset import (
    LabelHints,
    LazySeriesSet,
    SelectHints,
    SeriesSet,
    empty_series_set,
    merge_series_sets,
)
from .util import sort_unique


class Querier(Protocol):
    def close(self) -> None: ...

    def label_values(
        self, name: str, hints: LabelHints | None, *matchers: Matcher
    ) -> tuple[list[str], Annotations | None]: ...

    def label_names(self, hints: LabelHints | None, *matchers: Matcher) -> tuple[list[str], Annotations | None]: ...

    def select(self, sorted: bool, hints: SelectHints | None, *matchers: Matcher) -> SeriesSet: ...


class Queryable(Protocol):
    def querier(self, mint: int, maxt: int) -> Querier: ...


class ShardLike(Protocol):
    def queryable(
        self,
        extlabels: Labels,
        replica_label_names: Sequence[str],
        chunk_bytes_quota: Quota,
        row_count_quota: Quota,
        partition_max_range: int,
        partition_max_gap: int,
        partition_max_concurrency: int,
    ) -> Queryable: ...


@dataclass
class BlockMeta:
    """Description of a block as stored next to its files."""

    name: str
    mint: int
    maxt: int
    shards: int = 0
    version: int = 0
    columns_for_name: Mapping[str, list[str]] = field(default_factory=dict)


def _close_all(queriers: Sequence[Querier], what: str) -> None:
    """Close every querier, then raise one error describing all failures."""
    failures: list[tuple[str, BaseException]] = []
    for i, q in enumerate(queriers):
        try:
            q.close()
        except Exception as err:  # noqa: BLE001 - collected and re-raised below
            failures.append((f"unable to close {what} {i}: {err}", err))
    if failures:
        raise RuntimeError("\n".join(msg for msg, _ in failures)) from failures[0][1]


def _collect_strings(
    queriers: Sequence[Querier],
    query: Callable[[Querier], tuple[list[str], Annotations | None]],
    kind: str,
    what: str,
    limit: int,
) -> tuple[list[str], Annotations]:
    """Run ``query`` on all queriers concurrently and merge the string results."""

    def run(q: Querier) -> tuple[list[str], Annotations | None]:
        try:
            return query(q)
        except Exception as err:
            raise RuntimeError(f"unable to query {kind} for {what}: {err}") from err

    annos = Annotations()
    values: list[str] = []
    if queriers:
        with ThreadPoolExecutor(max_workers=len(queriers)) as pool:
            futures = [pool.submit(run, q) for q in queriers]
            try:
                for future in futures:
                    found, sub = future.result()
                    values.extend(found)
                    annos.merge(sub)
            except RuntimeError as err:
                raise RuntimeError(f"unable to query {kind}: {err}") from err

    result = sort_unique(values)
    if limit > 0 and len(result) > limit:
        result = result[:limit]
        annos.add(TRUNCATED_RESPONSE)
    return result, annos


def _limit_of(hints: Any) -> int:
    return hints.limit if hints is not None else 0


class Block:
    """A block made of shards, all covering the block's time range."""

    def __init__(self, meta: BlockMeta, *shards: ShardLike) -> None:
        self._meta = meta
        self._shards = tuple(shards)

    @property
    def meta(self) -> BlockMeta:
        return self._meta

    @property
    def shards(self) -> tuple[ShardLike, ...]:
        return self._shards

    def timerange(self) -> tuple[int, int]:
        return self._meta.mint, self._meta.maxt

    def queryable(
        self,
        extlabels: Labels,
        replica_label_names: Sequence[str],
        chunk_bytes_quota: Quota,
        row_count_quota: Quota,
        partition_max_range: int,
        partition_max_gap: int,
        partition_max_concurrency: int,
    ) -> BlockQueryable:
        shards = [
            shard.queryable(
                extlabels,
                replica_label_names,
                chunk_bytes_quota,
                row_count_quota,
                partition_max_range,
                partition_max_gap,
                partition_max_concurrency,
            )
            for shard in self._shards
        ]
        return BlockQueryable(extlabels, shards)

    def __repr__(self) -> str:
        return f"Block({self._meta.name!r}, shards={len(self._shards)})"


class BlockQueryable:
    """Hands out queriers that span all shards of a block."""

    def __init__(self, extlabels: Labels, shards: Sequence[Queryable]) -> None:
        self.extlabels = extlabels
        self._shards = list(shards)

    def querier(self, mint: int, maxt: int) -> BlockQuerier:
        queriers = []
        for shard in self._shards:
            try:
                queriers.append(shard.querier(mint, maxt))
            except Exception as err:
                raise RuntimeError(f"unable to get shard querier: {err}") from err
        return BlockQuerier(mint, maxt, queriers)


class BlockQuerier:
    """Queries every shard of a block and merges the answers."""

    def __init__(self, mint: int, maxt: int, shards: Sequence[Querier]) -> None:
        self.mint = mint
        self.maxt = maxt
        self._shards = list(shards)

    def close(self) -> None:
        _close_all(self._shards, "shard")

    def label_values(
        self, name: str, hints: LabelHints | None, *args: Matcher
    ) -> tuple[list[str], Annotations]:
        """Sorted distinct values of ``name`` over all shards, with warnings."""
        return _collect_strings(
            self._shards,
            lambda q: q.label_values(name, hints, *args),
            "label values",
            "shard",
            _limit_of(hints),
        )

    def label_names(self, hints: LabelHints | None, *args: Matcher) -> tuple[list[str], Annotations]:
        """Sorted distinct label names over all shards, with warnings."""
        return _collect_strings(
            self._shards,
            lambda q: q.label_names(hints, *args),
            "label names",
            "shard",
            _limit_of(hints),
        )

    def select(self, sorted: bool, hints: SelectHints | None, *args: Matcher) -> LazySeriesSet:
        """Series matching all matchers ``args``, selected in the background."""
        return LazySeriesSet(self._select, sorted, hints, *args)

    def _select(self, _want_sorted: bool, hints: SelectHints, *matchers: Matcher) -> SeriesSet:
        # Always ask for sorted results since they get merged afterwards.
        sets = [q.select(True, hints, *matchers) for q in self._shards]
        if not sets:
            return empty_series_set()
        return merge_series_sets(sets, hints.limit)