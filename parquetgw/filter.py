"""Filters that decide which blocks this gateway serves."""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import TypeVar

from .block import Block, BlockMeta
from .util import contains

B = TypeVar("B", bound=Block)


class AllMetasFilter:
    """Keeps every meta and every block."""

    def filter_metas(self, metas: Mapping[str, BlockMeta]) -> dict[str, BlockMeta]:
        return dict(metas)

    def filter_blocks(self, blocks: Sequence[B]) -> list[B]:
        return list(blocks)


ALL_METAS_FILTER = AllMetasFilter()


class ThanosBackfillMetaFilter:
    """Drops blocks that a store already serves.

    A block is dropped when it lies entirely inside the store's time range,
    minus ``overlap`` cut from the start of that range.
    """

    def __init__(self, overlap: timedelta = timedelta(0)) -> None:
        self._overlap_ms = overlap // timedelta(milliseconds=1)
        self._lock = threading.Lock()
        self._mint = 0
        self._maxt = 0

    def _covered(self, mint: int, maxt: int) -> bool:
        start = min(self._mint + self._overlap_ms, self._maxt)
        return contains(start, self._maxt, mint, maxt)

    def filter_metas(self, metas: Mapping[str, BlockMeta]) -> dict[str, BlockMeta]:
        with self._lock:
            return {k: v for k, v in metas.items() if not self._covered(v.mint, v.maxt)}

    def filter_blocks(self, blocks: Sequence[B]) -> list[B]:
        with self._lock:
            return [blk for blk in blocks if not self._covered(*blk.timerange())]

    def update(self, mint: int, maxt: int) -> None:
        """Record the time range, in milliseconds, that the store currently serves."""
        with self._lock:
            self._mint = mint
            self._maxt = maxt