"""
Deduplication helpers for crawler outputs.
"""
from __future__ import annotations

from typing import Callable, Hashable, Iterable, List, TypeVar

T = TypeVar("T")


def dedupe_by_key(items: Iterable[T], key_fn: Callable[[T], Hashable]) -> List[T]:
    """Keep the first item for every key, preserving input order."""
    seen = set()
    result: List[T] = []
    for item in items:
        key = key_fn(item)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
    return result
