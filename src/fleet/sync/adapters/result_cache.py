"""Bounded in-memory store of recent export/import results.

Results stay retrievable after the synchronous call returns, until evicted.
Every cached result is also recorded in history, so least-recently-used
eviction loses nothing durable.
"""

import threading
from collections import OrderedDict
from typing import Generic, Optional, TypeVar

T = TypeVar("T")

DEFAULT_CACHE_SIZE = 1000


class ResultCache(Generic[T]):
    """Thread-safe, id-keyed LRU cache."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._items: OrderedDict[str, T] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, key: str, value: T) -> None:
        with self._lock:
            self._items[key] = value
            self._items.move_to_end(key)
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            value = self._items.get(key)
            if value is not None:
                self._items.move_to_end(key)
            return value

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
