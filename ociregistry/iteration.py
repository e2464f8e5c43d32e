"""Helpers for the lazy sequences returned by registry listing operations.

A sequence is an iterator of items; an error ends it by being raised.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, TypeVar

T = TypeVar("T")

Seq = Iterator[T]


def collect(seq: Iterable[T]) -> List[T]:
    """Gather all items of seq into a list; any error from seq propagates."""
    return list(seq)


def slice_seq(xs: Iterable[T]) -> Iterator[T]:
    """Return a sequence yielding the items of xs in order."""
    yield from xs


def error_seq(err: BaseException) -> Iterator[T]:
    """Return a sequence that has no items and raises err when iterated."""
    raise err
    yield  # pragma: no cover - makes this a generator