"""Storage package."""
from flowgraph.storage.history_store import (
    HistoryStore,
    InMemoryHistoryStore,
    JsonFileHistoryStore,
    RedisHistoryStore,
    get_history_store,
)

__all__ = [
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonFileHistoryStore",
    "RedisHistoryStore",
    "get_history_store",
]
