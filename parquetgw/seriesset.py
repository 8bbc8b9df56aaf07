"""Series sets: lazy, concatenated, annotated and merged."""

from __future__ import annotations

import heapq
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Protocol

from .iterator import ErrSeriesIterator, ListChunk, SampleIterator, ValueType
from .labels import Labels, Matcher
from .notices import Annotations


@dataclass
class SelectHints:
    """Hints passed along with a select."""

    limit: int = 0
    func: str = ""
    by: bool = False
    grouping: list[str] = field(default_factory=list)


@dataclass
class LabelHints:
    """Hints passed along with a label names or label values query."""

    limit: int = 0


class Series(Protocol):
    labels: Labels

    def iterator(self) -> SampleIterator: ...


class SeriesSet(Protocol):
    def next(self) -> bool: ...

    def at(self) -> Any: ...

    def err(self) -> BaseException | None: ...

    def warnings(self) -> Annotations: ...


class _IterableSeriesSet:
    def __iter__(self) -> Iterator[Any]:
        while self.next():  # type: ignore[attr-defined]
            yield self.at()  # type: ignore[attr-defined]


class ConcatSeriesSet(_IterableSeriesSet):
    """Yields the given series in order."""

    def __init__(self, series: Iterable[Any] = ()) -> None:
        self._series = list(series)
        self._i = -1

    def next(self) -> bool:
        if self._i < len(self._series) - 1:
            self._i += 1
            return True
        return False

    def at(self) -> Any:
        if self._i < 0:
            raise IndexError("at() called before next()")
        return self._series[self._i]

    def err(self) -> BaseException | None:
        return None

    def warnings(self) -> Annotations:
        return Annotations()


class ErrSeriesSet(_IterableSeriesSet):
    """An empty series set that reports an error."""

    def __init__(self, err: BaseException) -> None:
        self._err = err

    def next(self) -> bool:
        return False

    def at(self) -> Any:
        raise IndexError("series set holds no series")

    def err(self) -> BaseException | None:
        return self._err

    def warnings(self) -> Annotations:
        return Annotations()


class WarningsSeriesSet(_IterableSeriesSet):
    """Wraps a series set and adds warnings to those it reports."""

    def __init__(self, inner: SeriesSet, warns: Annotations | None) -> None:
        self._inner = inner
        self._warns = warns

    def next(self) -> bool:
        return self._inner.next()

    def at(self) -> Any:
        return self._inner.at()

    def err(self) -> BaseException | None:
        return self._inner.err()

    def warnings(self) -> Annotations:
        return Annotations().merge(self._inner.warnings()).merge(self._warns)


SelectFn = Callable[..., SeriesSet]


def _copy_hints(hints: SelectHints) -> SelectHints:
    return replace(hints, grouping=list(hints.grouping))


class LazySeriesSet(_IterableSeriesSet):
    """Runs a select in the background; every accessor waits for it to finish."""

    def __init__(
        self,
        select_fn: SelectFn,
        want_sorted: bool,
        hints: SelectHints | None,
        *matchers: Matcher,
    ) -> None:
        self._select_fn = select_fn
        self._sorted = want_sorted
        # The caller may reuse its hints for another select running in parallel.
        self._hints = _copy_hints(hints) if hints is not None else SelectHints()
        self._matchers = matchers
        self._set: SeriesSet = ErrSeriesSet(RuntimeError("select did not complete"))
        self._done = threading.Event()
        threading.Thread(target=self._run, daemon=True).start()

    def _run(self) -> None:
        try:
            self._set = self._select_fn(self._sorted, _copy_hints(self._hints), *self._matchers)
        except Exception as err:  # noqa: BLE001 - reported through err()
            self._set = ErrSeriesSet(err)
        finally:
            self._done.set()

    def _resolved(self) -> SeriesSet:
        self._done.wait()
        return self._set

    def next(self) -> bool:
        return self._resolved().next()

    def at(self) -> Any:
        return self._resolved().at()

    def err(self) -> BaseException | None:
        return self._resolved().err()

    def warnings(self) -> Annotations:
        return self._resolved().warnings()


def empty_series_set() -> ConcatSeriesSet:
    return ConcatSeriesSet()


def new_concat_series_set(*args: Any) -> ConcatSeriesSet:
    """A series set over ``args``, in the order given."""
    if not args:
        return empty_series_set()
    return ConcatSeriesSet(args)


def _drain(it: SampleIterator) -> Iterator[tuple[int, float]]:
    while it.next() != ValueType.NONE:
        yield it.at()


@dataclass
class _ChainedSeries:
    """Several series with equal labels whose samples are merged by timestamp."""

    labels: Labels
    parts: Sequence[Any]

    def iterator(self) -> SampleIterator:
        merged: dict[int, float] = {}
        for part in self.parts:
            it = part.iterator()
            for t, v in _drain(it):
                merged.setdefault(t, v)
            err = it.err()
            if err is not None:
                return ErrSeriesIterator(err)
        return ListChunk(sorted(merged.items())).iterator()


class _MergeSeriesSet(_IterableSeriesSet):
    def __init__(self, sets: Sequence[SeriesSet], limit: int) -> None:
        self._sets = sets
        self._limit = limit
        self._heap: list[tuple[Labels, int]] | None = None
        self._current: Any = None
        self._emitted = 0

    def _advance(self, idx: int) -> None:
        s = self._sets[idx]
        if s.next():
            heapq.heappush(self._heap, (s.at().labels, idx))  # type: ignore[arg-type]

    def next(self) -> bool:
        if self._heap is None:
            self._heap = []
            for idx in range(len(self._sets)):
                self._advance(idx)
        if self._limit > 0 and self._emitted >= self._limit:
            return False
        if not self._heap:
            self._current = None
            return False

        lbls, idx = heapq.heappop(self._heap)
        group = [self._sets[idx].at()]
        self._advance(idx)
        while self._heap and self._heap[0][0] == lbls:
            _, idx = heapq.heappop(self._heap)
            group.append(self._sets[idx].at())
            self._advance(idx)

        self._current = group[0] if len(group) == 1 else _ChainedSeries(lbls, group)
        self._emitted += 1
        return True

    def at(self) -> Any:
        if self._current is None:
            raise IndexError("at() called without a current series")
        return self._current

    def err(self) -> BaseException | None:
        return next((e for e in (s.err() for s in self._sets) if e is not None), None)

    def warnings(self) -> Annotations:
        merged = Annotations()
        for s in self._sets:
            merged.merge(s.warnings())
        return merged


def merge_series_sets(sets: Iterable[SeriesSet], limit: int = 0) -> SeriesSet:
    """Merge sorted series sets; series with equal labels are chained together.

    At most ``limit`` series are returned when ``limit`` is positive.
    """
    sets = list(sets)
    if not sets:
        return empty_series_set()
    if len(sets) == 1:
        return sets[0]
    return _MergeSeriesSet(sets, limit)