"""Turning the chunks found for a shard into series clipped to a time range."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from .iterator import Chunk, ChunkSeries
from .labels import Labels, Matcher
from .util import intersects


@dataclass
class ChunkMeta:
    """A chunk together with the time range it covers."""

    min_time: int
    max_time: int
    chunk: Chunk


@dataclass
class SeriesChunks:
    """The chunks read for one series; ``labels_hash`` defaults to the hash of ``labels``."""

    labels: Labels
    chunks: list[ChunkMeta] = field(default_factory=list)
    labels_hash: int | None = None

    def __post_init__(self) -> None:
        if self.labels_hash is None:
            self.labels_hash = hash(self.labels)


def series_from_series_chunks(
    chunks: Iterable[SeriesChunks], mint: int, maxt: int
) -> tuple[list[ChunkSeries], bool]:
    """Build series limited to [mint, maxt] and report whether duplicates were dropped.

    Of several entries with the same label hash only the first is kept. Chunks
    that do not touch the interval are left out.
    """
    seen: set[int | None] = set()
    result: list[ChunkSeries] = []
    dropped = False
    for sc in chunks:
        if sc.labels_hash in seen:
            # A smarter merge could fill in missing chunks; skipping is enough for now.
            dropped = True
            continue
        seen.add(sc.labels_hash)
        kept = [c.chunk for c in sc.chunks if intersects(mint, maxt, c.min_time, c.max_time)]
        result.append(ChunkSeries(sc.labels, kept, mint, maxt))
    return result, dropped


def matchers_to_strings(matchers: Iterable[Matcher]) -> list[str]:
    """The text form of each matcher."""
    return [str(m) for m in matchers]