"""
SiteCheck Storage — local key-value persistence (one JSON value per key).
"""
from .kv import KeyValueStore, SqliteKeyValueStore, MemoryKeyValueStore

__all__ = [
    "KeyValueStore",
    "SqliteKeyValueStore",
    "MemoryKeyValueStore",
]
