"""A filesystem-backed object bucket and a positional reader over its objects."""

from __future__ import annotations

import os
import shutil
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Protocol

from .metrics import bucket_requests


class ObjectNotFound(FileNotFoundError):
    """The named object does not exist in the bucket."""

    def __init__(self, object_name: str) -> None:
        super().__init__(f"object {object_name!r} not found")
        self.object_name = object_name


@dataclass(frozen=True)
class ObjectAttributes:
    """Size and modification time of an object."""

    size: int
    last_modified: datetime


class FilesystemBucket:
    """An object bucket whose objects are files below a root directory.

    Object names use ``/`` as separator, whatever the platform.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, name: str) -> Path:
        path = (self._root / name).resolve()
        if path != self._root and self._root not in path.parents:
            raise ValueError(f"object name {name!r} escapes the bucket")
        return path

    def _file(self, name: str) -> Path:
        path = self._path(name)
        if not path.is_file():
            raise ObjectNotFound(name)
        return path

    def iter(self, prefix: str = "", recursive: bool = False) -> Iterator[str]:
        """Names below ``prefix`` in sorted order.

        Without ``recursive`` only direct children are named, directories with a
        trailing ``/``; with it every object below ``prefix`` is named.
        """
        if prefix and not prefix.endswith("/"):
            prefix += "/"
        base = self._path(prefix) if prefix else self._root
        if not base.is_dir():
            return
        if not recursive:
            for entry in sorted(base.iterdir(), key=lambda p: p.name):
                yield prefix + entry.name + ("/" if entry.is_dir() else "")
            return
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames.sort()
            rel = Path(dirpath).relative_to(base).as_posix()
            rel_prefix = prefix if rel == "." else f"{prefix}{rel}/"
            for filename in sorted(filenames):
                yield rel_prefix + filename

    def get(self, name: str) -> bytes:
        """The whole content of an object."""
        return self._file(name).read_bytes()

    def get_range(self, name: str, offset: int, length: int) -> bytes:
        """Up to ``length`` bytes from ``offset``; a negative length reads to the end."""
        if offset < 0:
            raise ValueError(f"offset must not be negative, got {offset}")
        path = self._file(name)
        with path.open("rb") as f:
            f.seek(offset)
            return f.read() if length < 0 else f.read(length)

    def upload(self, name: str, data: bytes | BinaryIO) -> None:
        """Store ``data`` under ``name``, replacing any earlier object."""
        path = self._path(name)
        if path == self._root:
            raise ValueError("object name must not be empty")
        path.parent.mkdir(parents=True, exist_ok=True)
        content = data if isinstance(data, (bytes, bytearray, memoryview)) else data.read()
        path.write_bytes(bytes(content))

    def delete(self, name: str) -> None:
        """Remove an object, or everything below a directory, and prune empty parents."""
        path = self._path(name)
        if path == self._root:
            raise ValueError("refusing to delete the bucket root")
        if not path.exists():
            raise ObjectNotFound(name)
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
        parent = path.parent
        while parent != self._root and not any(parent.iterdir()):
            parent.rmdir()
            parent = parent.parent

    def attributes(self, name: str) -> ObjectAttributes:
        stat = self._file(name).stat()
        return ObjectAttributes(
            size=stat.st_size,
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        )


class RangeReader(Protocol):
    def get_range(self, name: str, offset: int, length: int) -> bytes: ...


class BucketReaderAt:
    """Reads byte ranges of one object, one bucket request per read."""

    def __init__(self, bucket: RangeReader, name: str) -> None:
        self._bucket = bucket
        self.name = name

    def read_at(self, size: int, offset: int) -> bytes:
        """Exactly ``size`` bytes from ``offset``; raises EOFError on a short read."""
        bucket_requests.inc()
        try:
            data = self._bucket.get_range(self.name, offset, size)
        except Exception as err:
            raise OSError(f"unable to read range for {self.name}: {err}") from err
        if len(data) != size:
            raise EOFError(f"read {len(data)} of {size} bytes from {self.name} at offset {offset}")
        return data