"""Zigzag integers and the varint-encoded label column index."""

from __future__ import annotations

from collections.abc import Iterable

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
_UINT64_MAX = (1 << 64) - 1
_MAX_VARINT_LEN64 = 10


def zigzag_encode(x: int) -> int:
    """Map a signed 64-bit integer onto an unsigned one."""
    if not _INT64_MIN <= x <= _INT64_MAX:
        raise OverflowError(f"{x} does not fit in a signed 64-bit integer")
    return (x << 1) ^ (x >> 63)


def zigzag_decode(v: int) -> int:
    """Inverse of :func:`zigzag_encode`."""
    if not 0 <= v <= _UINT64_MAX:
        raise OverflowError(f"{v} does not fit in an unsigned 64-bit integer")
    return (v >> 1) ^ -(v & 1)


def _append_uvarint(out: bytearray, v: int) -> None:
    while v >= 0x80:
        out.append((v & 0x7F) | 0x80)
        v >>= 7
    out.append(v)


def _read_uvarint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    for i in range(_MAX_VARINT_LEN64):
        if pos >= len(data):
            raise ValueError("unexpected end of data" if i else "no data to read")
        b = data[pos]
        pos += 1
        if b < 0x80:
            if i == _MAX_VARINT_LEN64 - 1 and b > 1:
                raise ValueError("varint overflows a 64-bit integer")
            return result | (b << shift), pos
        result |= (b & 0x7F) << shift
        shift += 7
    raise ValueError("varint overflows a 64-bit integer")


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    ux, pos = _read_uvarint(data, pos)
    return zigzag_decode(ux), pos


def encode_label_column_index(s: Iterable[int]) -> bytes:
    """Encode column indices, sorted, as a count followed by signed varints."""
    values = sorted(s)
    out = bytearray()
    _append_uvarint(out, zigzag_encode(len(values)))
    for v in values:
        _append_uvarint(out, zigzag_encode(v))
    return bytes(out)


def decode_label_column_index(b: bytes) -> list[int]:
    """Decode what :func:`encode_label_column_index` produced."""
    data = bytes(b)
    count, pos = _read_varint(data, 0)
    if count < 0:
        raise ValueError(f"negative column count {count}")
    result = []
    for _ in range(count):
        v, pos = _read_varint(data, pos)
        result.append(v)
    return result