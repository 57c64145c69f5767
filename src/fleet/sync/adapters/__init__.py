"""Adapters layer - Infrastructure implementations for the sync engine.

- ResultCache: bounded LRU store of recent results
- InMemoryHistoryRepository / PostgresHistoryRepository: IHistoryRepository
- InMemoryDeviceInventory / PostgresDeviceInventory: IDeviceInventory
"""

from .memory_history_repo import InMemoryHistoryRepository
from .memory_inventory import InMemoryDeviceInventory
from .postgres_history_repo import PostgresHistoryRepository
from .postgres_inventory import PostgresDeviceInventory
from .result_cache import DEFAULT_CACHE_SIZE, ResultCache

__all__ = [
    "DEFAULT_CACHE_SIZE",
    "InMemoryDeviceInventory",
    "InMemoryHistoryRepository",
    "PostgresDeviceInventory",
    "PostgresHistoryRepository",
    "ResultCache",
]
