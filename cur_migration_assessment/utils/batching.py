"""
Fixed-size batch iteration shared by the parser and the aggregator.
"""

from itertools import islice
from typing import Callable, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


def iter_batches(items: Iterable[T], batch_size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of at most ``batch_size`` items."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    iterator = iter(items)
    while True:
        batch = list(islice(iterator, batch_size))
        if not batch:
            return
        yield batch


def batched_sum(
    items: Iterable[T],
    batch_size: int = 10_000,
    key: Optional[Callable[[T], float]] = None,
) -> float:
    """Sum ``key(item)`` (or the items themselves) one batch at a time."""
    total = 0.0
    for batch in iter_batches(items, batch_size):
        if key is None:
            total += sum(batch)
        else:
            total += sum(key(item) for item in batch)
    return total


def batched_mean(
    items: Iterable[T],
    batch_size: int = 10_000,
    key: Optional[Callable[[T], Optional[float]]] = None,
) -> Optional[float]:
    """Mean of the non-None values, or None when there are none."""
    total = 0.0
    count = 0
    for batch in iter_batches(items, batch_size):
        for item in batch:
            value = key(item) if key is not None else item
            if value is None:
                continue
            total += value
            count += 1
    if count == 0:
        return None
    return total / count
