from .local_store import InMemoryKeyValueStore, JsonFileKeyValueStore

__all__ = ["InMemoryKeyValueStore", "JsonFileKeyValueStore"]
