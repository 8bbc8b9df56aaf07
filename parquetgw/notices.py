"""Non-fatal query warnings and the collection that carries them."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

TRUNCATED_RESPONSE = UserWarning("results truncated due to limit")
DROPPED_SERIES_AFTER_EXTERNAL_LABEL_MANGLING = UserWarning(
    "dropped series after external label mangling"
)
DROPPED_LABEL_VALUES_AFTER_EXTERNAL_LABEL_MANGLING = UserWarning(
    "dropped label values after external label mangling"
)


class Annotations:
    """Warnings keyed by their message, so each message appears once."""

    def __init__(self, errors: Iterable[BaseException] = ()) -> None:
        self._errors: dict[str, BaseException] = {}
        for err in errors:
            self.add(err)

    def add(self, err: BaseException) -> Annotations:
        """Record ``err``; a later error with the same message replaces the earlier."""
        self._errors[str(err)] = err
        return self

    def merge(self, other: Annotations | None) -> Annotations:
        """Add every warning of ``other`` to this collection."""
        if other is not None:
            self._errors.update(other._errors)
        return self

    def as_errors(self) -> list[BaseException]:
        return list(self._errors.values())

    def __iter__(self) -> Iterator[BaseException]:
        return iter(list(self._errors.values()))

    def __len__(self) -> int:
        return len(self._errors)

    def __contains__(self, err: object) -> bool:
        return isinstance(err, BaseException) and self._errors.get(str(err)) is err

    def __repr__(self) -> str:
        return f"Annotations({list(self._errors)!r})"