"""Shared key-value store: client, key naming and JSON records."""

from librarian.store.client import KeyValueStore

__all__ = ["KeyValueStore"]
