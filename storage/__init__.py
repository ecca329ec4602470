"""Persistence contract, file-backed store and the unlockable catalog."""

from storage.store import SessionStore, JsonFileStore, InMemoryStore

__all__ = ["SessionStore", "JsonFileStore", "InMemoryStore"]
