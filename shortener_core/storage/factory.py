"""
Factory for creating URL storage instances.
Simple, clean factory with singleton caching.
"""

import logging
from enum import Enum
from typing import Optional

from .strategies import URLStorageStrategy, InMemoryURLStorage, JournalURLStorage, SQLURLStorage
from shortener_core.config import settings


class StorageBackend(Enum):
    """Available URL storage backends"""
    AUTO = "auto"
    MEMORY = "memory"
    JOURNAL = "journal"
    SQL = "sql"


def resolve_backend(backend: StorageBackend) -> StorageBackend:
    """
    Turn AUTO into a concrete backend.

    A database URL wins, then a journal path, then memory.
    """
    if backend != StorageBackend.AUTO:
        return backend
    if settings.database_url:
        return StorageBackend.SQL
    if settings.file_storage_path:
        return StorageBackend.JOURNAL
    return StorageBackend.MEMORY


class URLStorageFactory:
    """
    Simple factory for creating URL storage instances.

    The backend is picked once at startup from configuration; nothing
    downstream inspects which implementation it got.
    """

    _instance: URLStorageStrategy = None  # Single cached instance

    @classmethod
    def create(
        cls,
        backend: StorageBackend,
        logger: Optional[logging.Logger] = None
    ) -> URLStorageStrategy:
        """
        Create or return cached storage instance.

        Args:
            backend: Type of storage backend (from enum)
            logger: Logger handed to the storage

        Returns:
            Singleton storage instance
        """
        if cls._instance is not None:
            return cls._instance

        logger = logger or logging.getLogger(__name__)
        backend = resolve_backend(backend)

        if backend == StorageBackend.MEMORY:
            cls._instance = InMemoryURLStorage(logger=logger)
            logger.info("In-memory URL storage initialized")

        elif backend == StorageBackend.JOURNAL:
            cls._instance = JournalURLStorage(settings.file_storage_path, logger=logger)
            logger.info("Journal URL storage initialized at %s", settings.file_storage_path)

        elif backend == StorageBackend.SQL:
            cls._instance = SQLURLStorage(
                database_url=settings.database_url,
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
                logger=logger,
            )
            logger.info("Relational URL storage initialized")

        else:
            raise ValueError(f"Unknown storage backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
