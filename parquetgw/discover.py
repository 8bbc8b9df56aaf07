"""Discovery of TSDB block metadata in an object bucket."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

from .bucket import ObjectAttributes
from .labels import Matcher, from_map
from .metrics import WHAT_DISCOVERER, sync_last_successful_time, sync_max_time, sync_min_time

log = logging.getLogger(__name__)

META_FILENAME = "meta.json"
DELETION_MARK_FILENAME = "deletion-mark.json"
RES_LEVEL0 = 0

_CROCKFORD = frozenset("0123456789ABCDEFGHJKMNPQRSTVWXYZ")
_ZERO_ULID = "0" * 26


class Bucket(Protocol):
    def iter(self, prefix: str = "", recursive: bool = False) -> Iterator[str]: ...

    def get(self, name: str) -> bytes: ...

    def attributes(self, name: str) -> ObjectAttributes: ...


@dataclass(frozen=True)
class TSDBMeta:
    """The parts of a TSDB block's meta file that discovery looks at."""

    ulid: str
    min_time: int = 0
    max_time: int = 0
    labels: Mapping[str, str] = field(default_factory=dict)
    downsample_resolution: int = RES_LEVEL0


def _parse_ulid(value: Any) -> str:
    if not isinstance(value, str) or len(value) != 26:
        raise ValueError(f"invalid ulid {value!r}: must be 26 characters")
    ulid = value.upper()
    if any(ch not in _CROCKFORD for ch in ulid):
        raise ValueError(f"invalid ulid {value!r}: bad character")
    if ulid[0] > "7":
        raise ValueError(f"invalid ulid {value!r}: overflows 128 bits")
    return ulid


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} must be an integer, got {value!r}")
    return value


def _object(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be an object, got {value!r}")
    return value


def parse_tsdb_meta(data: bytes | str) -> TSDBMeta:
    """Decode the JSON of a block meta file."""
    try:
        doc = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ValueError(f"invalid meta json: {err}") from err
    doc = _object(doc, "meta")
    thanos = _object(doc.get("thanos"), "thanos")
    labels = _object(thanos.get("labels"), "thanos.labels")
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in labels.items()):
        raise ValueError("thanos.labels must map strings to strings")
    downsample = _object(thanos.get("downsample"), "thanos.downsample")
    return TSDBMeta(
        ulid=_parse_ulid(doc.get("ulid", _ZERO_ULID)),
        min_time=_int(doc.get("minTime", 0), "minTime"),
        max_time=_int(doc.get("maxTime", 0), "maxTime"),
        labels=dict(labels),
        downsample_resolution=_int(downsample.get("resolution", RES_LEVEL0), "downsample.resolution"),
    )


class TSDBDiscoverer:
    """Keeps track of the complete, raw-resolution TSDB blocks in a bucket."""

    def __init__(
        self,
        bucket: Bucket,
        *,
        concurrency: int = 1,
        external_label_matchers: Iterable[Matcher] = (),
        min_block_age: timedelta = timedelta(0),
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self._bucket = bucket
        self._concurrency = concurrency
        self._matchers = tuple(external_label_matchers)
        self._min_block_age_ms = min_block_age // timedelta(milliseconds=1)
        self._lock = threading.Lock()
        self._metas: dict[str, TSDBMeta] = {}

    def metas(self) -> dict[str, TSDBMeta]:
        """A copy of the known metas keyed by block ULID."""
        with self._lock:
            return dict(self._metas)

    def discover(self) -> None:
        """Rescan the bucket: learn new blocks and forget those that are gone."""
        files: dict[str, list[str]] = defaultdict(list)
        for name in self._bucket.iter("", recursive=True):
            log.debug("inspecting bucket location %s", name)
            parts = name.split("/")
            if len(parts) != 2:
                continue
            files[parts[0]].append(parts[1])

        # Blocks without a meta file are incomplete; marked ones are about to go.
        active = {
            block
            for block, names in files.items()
            if META_FILENAME in names and DELETION_MARK_FILENAME not in names
        }
        with self._lock:
            pending = sorted(active - self._metas.keys())

        fresh: dict[str, TSDBMeta] = {}
        if pending:
            with ThreadPoolExecutor(max_workers=self._concurrency) as pool:
                futures = {block: pool.submit(self._read_meta_file, block) for block in pending}
                for block, future in futures.items():
                    try:
                        meta = future.result()
                    except Exception as err:
                        raise RuntimeError(
                            f"unable to read meta: unable to read meta file for {block!r}: {err}"
                        ) from err
                    fresh[meta.ulid] = meta

        fresh = {
            k: v
            for k, v in fresh.items()
            if self._matches_external_labels(v) and v.downsample_resolution == RES_LEVEL0
        }

        cutoff = int(time.time() * 1000) - self._min_block_age_ms
        with self._lock:
            self._metas.update(fresh)
            self._metas = {
                k: v for k, v in self._metas.items() if v.max_time <= cutoff and k in active
            }
            if self._metas:
                sync_min_time.with_label_values(WHAT_DISCOVERER).set(
                    min(v.min_time for v in self._metas.values())
                )
                sync_max_time.with_label_values(WHAT_DISCOVERER).set(
                    max(v.max_time for v in self._metas.values())
                )
            sync_last_successful_time.with_label_values(WHAT_DISCOVERER).set_to_current_time()

    def _matches_external_labels(self, meta: TSDBMeta) -> bool:
        series = from_map(meta.labels)
        return all(m.matches(series.get(m.name)) for m in self._matchers)

    def _read_meta_file(self, block: str) -> TSDBMeta:
        mfile = f"{block}/{META_FILENAME}"
        try:
            self._bucket.attributes(mfile)
        except Exception as err:
            raise OSError(f"unable to attr {mfile}: {err}") from err
        try:
            data = self._bucket.get(mfile)
        except Exception as err:
            raise OSError(f"unable to get {mfile}: {err}") from err
        try:
            return parse_tsdb_meta(data)
        except ValueError as err:
            raise ValueError(f"unable to decode {mfile}: {err}") from err