"""Quotas and semaphores that bound the work done by queries."""

from __future__ import annotations

import threading


class ResourceExhausted(Exception):
    """A quota ran out."""

    def __init__(self, used: int) -> None:
        super().__init__(f"resource exhausted (used {used})")
        self.used = used


def is_resource_exhausted(err: BaseException | None) -> bool:
    """Whether ``err`` or any exception in its chain is :class:`ResourceExhausted`."""
    seen: set[int] = set()
    cur = err
    while cur is not None and id(cur) not in seen:
        if isinstance(cur, ResourceExhausted):
            return True
        seen.add(id(cur))
        cur = cur.__cause__ if cur.__cause__ is not None else cur.__context__
    return False


class Semaphore:
    """Bounds concurrent work to ``n`` holders; ``n == 0`` means unlimited."""

    def __init__(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"semaphore size must not be negative, got {n}")
        self._limit = n
        self._held = 0
        self._cond = threading.Condition()

    @property
    def in_use(self) -> int:
        with self._cond:
            return self._held

    def reserve(self, timeout: float | None = None) -> None:
        """Take one slot, waiting up to ``timeout`` seconds (forever if None)."""
        if self._limit == 0:
            return
        with self._cond:
            if not self._cond.wait_for(lambda: self._held < self._limit, timeout):
                raise TimeoutError("timed out waiting for semaphore")
            self._held += 1

    def release(self) -> None:
        """Give a slot back."""
        if self._limit == 0:
            return
        with self._cond:
            if self._held == 0:
                raise RuntimeError("semaphore would block on release")
            self._held -= 1
            self._cond.notify()

    def __enter__(self) -> Semaphore:
        self.reserve()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


def unlimited_semaphore() -> Semaphore:
    return Semaphore(0)


class Quota:
    """A budget of ``n`` units consumed by reservations; ``n == 0`` means unlimited."""

    def __init__(self, n: int) -> None:
        self._limit = n
        self._remaining = n
        self._lock = threading.Lock()

    def reserve(self, n: int) -> None:
        """Consume ``n`` units or raise :class:`ResourceExhausted`."""
        if self._limit == 0:
            return
        with self._lock:
            if self._remaining - n < 0:
                raise ResourceExhausted(self._limit)
            self._remaining -= n


def unlimited_quota() -> Quota:
    return Quota(0)