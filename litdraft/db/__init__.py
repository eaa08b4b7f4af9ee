"""
Local storage: SQLAlchemy engine, key-value table and stores.
"""
from .kv_store import KeyValueStore, InMemoryKeyValueStore, SqlKeyValueStore

__all__ = ['KeyValueStore', 'InMemoryKeyValueStore', 'SqlKeyValueStore']
