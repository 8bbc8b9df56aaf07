"""Sample iterators over the chunks of a single series."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from .labels import Labels

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


class ValueType(enum.IntEnum):
    """Kind of sample an iterator is positioned at; NONE means exhausted."""

    NONE = 0
    FLOAT = 1
    HISTOGRAM = 2
    FLOAT_HISTOGRAM = 3


class SampleIterator(Protocol):
    def seek(self, t: int) -> ValueType: ...

    def next(self) -> ValueType: ...

    def at(self) -> tuple[int, float]: ...

    def at_t(self) -> int: ...

    def err(self) -> BaseException | None: ...


class Chunk(Protocol):
    def iterator(self) -> SampleIterator: ...


class _ListChunkIterator:
    """Walks the samples of a :class:`ListChunk`."""

    def __init__(self, samples: Sequence[tuple[int, float]]) -> None:
        self._samples = samples
        self._pos = -1
        self._done = False
        self._error: BaseException | None = None

    def next(self) -> ValueType:
        if self._done or self._pos + 1 >= len(self._samples):
            self._done = True
            return ValueType.NONE
        self._pos += 1
        return ValueType.FLOAT

    def seek(self, t: int) -> ValueType:
        if self._done:
            return ValueType.NONE
        while self._pos < 0 or self._samples[self._pos][0] < t:
            if self.next() == ValueType.NONE:
                return ValueType.NONE
        return ValueType.FLOAT

    def at(self) -> tuple[int, float]:
        if self._pos < 0:
            return INT64_MIN, 0.0
        return self._samples[self._pos]

    def at_t(self) -> int:
        return self.at()[0]

    def err(self) -> BaseException | None:
        return self._error


class ListChunk:
    """An in-memory chunk of float samples ordered by timestamp."""

    __slots__ = ("samples",)

    def __init__(self, samples: Iterable[tuple[int, float]] = ()) -> None:
        ordered = tuple((int(t), float(v)) for t, v in samples)
        for (prev, _), (cur, _) in zip(ordered, ordered[1:]):
            if cur <= prev:
                raise ValueError(f"sample timestamps must increase, got {cur} after {prev}")
        self.samples = ordered

    @property
    def min_time(self) -> int:
        if not self.samples:
            raise ValueError("empty chunk has no time range")
        return self.samples[0][0]

    @property
    def max_time(self) -> int:
        if not self.samples:
            raise ValueError("empty chunk has no time range")
        return self.samples[-1][0]

    def iterator(self) -> _ListChunkIterator:
        return _ListChunkIterator(self.samples)

    def __len__(self) -> int:
        return len(self.samples)

    def __repr__(self) -> str:
        return f"ListChunk({list(self.samples)!r})"


class ErrSeriesIterator:
    """An iterator that holds no samples and reports an error."""

    def __init__(self, err: BaseException | None) -> None:
        self._err = err

    def seek(self, t: int) -> ValueType:
        return ValueType.NONE

    def next(self) -> ValueType:
        return ValueType.NONE

    def at(self) -> tuple[int, float]:
        return 0, 0.0

    def at_t(self) -> int:
        return 0

    def err(self) -> BaseException | None:
        return self._err


class NopIterator(ErrSeriesIterator):
    """An iterator that holds no samples and reports no error."""

    def __init__(self) -> None:
        super().__init__(None)


class ChunkSeriesIterator:
    """Chains time-ordered chunk iterators, skipping where adjacent chunks overlap."""

    def __init__(self, chunks: Sequence[SampleIterator]) -> None:
        if not chunks:
            raise ValueError("got empty chunks")
        self._chunks = list(chunks)
        self._i = 0
        self._last = ValueType.NONE

    def seek(self, t: int) -> ValueType:
        # Chunks are expected to be trimmed to the range of interest already,
        # so stepping forward sample by sample is good enough.
        while self.at_t() < t:
            self._last = self.next()
            if self._last == ValueType.NONE:
                return ValueType.NONE
        return self._last

    def next(self) -> ValueType:
        last_t = self.at_t()
        value_type = self._chunks[self._i].next()
        if value_type != ValueType.NONE:
            self._last = value_type
            return value_type
        if self.err() is not None or self._i >= len(self._chunks) - 1:
            return ValueType.NONE
        self._i += 1
        return self.seek(last_t + 1)

    def at(self) -> tuple[int, float]:
        return self._chunks[self._i].at()

    def at_t(self) -> int:
        return self._chunks[self._i].at_t()

    def err(self) -> BaseException | None:
        return self._chunks[self._i].err()


def new_chunk_series_iterator(chunks: Sequence[SampleIterator]) -> ChunkSeriesIterator | ErrSeriesIterator:
    """Chain ``chunks``; with no chunks, an iterator that reports the problem."""
    if not chunks:
        return ErrSeriesIterator(ValueError("got empty chunks"))
    return ChunkSeriesIterator(chunks)


class BoundedSeriesIterator:
    """Restricts another iterator to the closed interval [mint, maxt]."""

    def __init__(self, it: SampleIterator, mint: int, maxt: int) -> None:
        self._it = it
        self.mint = mint
        self.maxt = maxt

    def seek(self, t: int) -> ValueType:
        if t > self.maxt:
            return ValueType.NONE
        return self._it.seek(max(t, self.mint))

    def next(self) -> ValueType:
        value_type = self._it.next()
        if value_type == ValueType.NONE:
            return ValueType.NONE
        t = self._it.at_t()
        if t < self.mint:
            if self.seek(self.mint) == ValueType.NONE:
                return ValueType.NONE
            t = self._it.at_t()
        if t <= self.maxt:
            return value_type
        return ValueType.NONE

    def at(self) -> tuple[int, float]:
        return self._it.at()

    def at_t(self) -> int:
        return self._it.at_t()

    def err(self) -> BaseException | None:
        return self._it.err()


@dataclass
class ChunkSeries:
    """A labelled series whose samples come from chunks, clipped to [mint, maxt]."""

    labels: Labels
    chunks: list[Chunk] = field(default_factory=list)
    mint: int = INT64_MIN
    maxt: int = INT64_MAX

    def iterator(self) -> SampleIterator:
        its = [chunk.iterator() for chunk in self.chunks]
        # All chunks may have been trimmed away for lying outside the interval.
        if not its:
            return NopIterator()
        return BoundedSeriesIterator(new_chunk_series_iterator(its), self.mint, self.maxt)