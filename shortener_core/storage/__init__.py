"""
URL storage module.

Implements the Strategy Pattern for pluggable URL storage: one async
interface, three backends (memory, append-only journal file, relational).
"""

from .strategies import URLStorageStrategy, InMemoryURLStorage, JournalURLStorage, SQLURLStorage
from .factory import URLStorageFactory, StorageBackend

__all__ = [
    "URLStorageStrategy",
    "InMemoryURLStorage",
    "JournalURLStorage",
    "SQLURLStorage",
    "URLStorageFactory",
    "StorageBackend",
]
