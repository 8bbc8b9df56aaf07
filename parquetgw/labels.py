"""Label sets and label matchers."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from operator import itemgetter

_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\t": "\\t", "\r": "\\r"}


def _quote(s: str) -> str:
    out = ['"']
    for ch in s:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch.isprintable():
            out.append(ch)
        elif ord(ch) < 0x80:
            out.append(f"\\x{ord(ch):02x}")
        elif ord(ch) <= 0xFFFF:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(f"\\U{ord(ch):08x}")
    out.append('"')
    return "".join(out)


class Labels:
    """An immutable set of name/value pairs kept sorted by name."""

    __slots__ = ("_pairs",)

    def __init__(self, pairs: Iterable[tuple[str, str]] = ()) -> None:
        self._pairs: tuple[tuple[str, str], ...] = tuple(sorted(pairs, key=itemgetter(0)))

    def get(self, name: str) -> str:
        """Value of ``name``, or the empty string if absent."""
        for n, v in self._pairs:
            if n == name:
                return v
        return ""

    def has(self, name: str) -> bool:
        return any(n == name for n, _ in self._pairs)

    def names(self) -> list[str]:
        return [n for n, _ in self._pairs]

    def to_dict(self) -> dict[str, str]:
        return dict(self._pairs)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Labels):
            return NotImplemented
        return self._pairs == other._pairs

    def __hash__(self) -> int:
        return hash(self._pairs)

    def __lt__(self, other: Labels) -> bool:
        return compare(self, other) < 0

    def __str__(self) -> str:
        return "{" + ", ".join(f"{n}={_quote(v)}" for n, v in self._pairs) + "}"

    def __repr__(self) -> str:
        return f"Labels({list(self._pairs)!r})"


def from_strings(*args: str) -> Labels:
    """Build labels from alternating names and values."""
    if len(args) % 2:
        raise ValueError("invalid number of strings")
    return Labels(zip(args[::2], args[1::2]))


def from_map(m: Mapping[str, str]) -> Labels:
    return Labels(m.items())


def compare(a: Labels, b: Labels) -> int:
    """Order label sets by names, then values, then length: -1, 0 or 1."""
    for (an, av), (bn, bv) in zip(a, b):
        if an != bn:
            return -1 if an < bn else 1
        if av != bv:
            return -1 if av < bv else 1
    return (len(a) > len(b)) - (len(a) < len(b))


class MatchType(enum.Enum):
    EQUAL = "="
    NOT_EQUAL = "!="
    REGEXP = "=~"
    NOT_REGEXP = "!~"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Matcher:
    """Selects label values by equality or by a fully anchored regular expression."""

    type: MatchType
    name: str
    value: str
    _regex: re.Pattern[str] | None = field(init=False, repr=False, compare=False, default=None)

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", MatchType(self.type))
        if self.type in (MatchType.REGEXP, MatchType.NOT_REGEXP):
            try:
                pattern = re.compile(f"(?s:{self.value})")
            except re.error as err:
                raise ValueError(f"invalid regular expression {self.value!r}: {err}") from err
            object.__setattr__(self, "_regex", pattern)

    def matches(self, value: str) -> bool:
        if self.type is MatchType.EQUAL:
            return value == self.value
        if self.type is MatchType.NOT_EQUAL:
            return value != self.value
        assert self._regex is not None
        found = self._regex.fullmatch(value) is not None
        return found if self.type is MatchType.REGEXP else not found

    def __str__(self) -> str:
        return f"{self.name}{self.type.value}{_quote(self.value)}"