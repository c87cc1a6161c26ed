"""
Factory for creating deletion status stores.
Simple, clean factory with singleton caching.
"""

import logging
from enum import Enum
from typing import Optional

from .strategies import DeletionStatusStrategy, InMemoryDeletionStatus, RedisDeletionStatus
from shortener_core.config import settings


class StatusBackend(Enum):
    """Available deletion status backends"""
    REDIS = "redis"
    MEMORY = "memory"


class DeletionStatusFactory:
    """
    Simple factory for creating deletion status stores.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: DeletionStatusStrategy = None  # Single cached instance

    @classmethod
    def create(
        cls,
        backend: StatusBackend,
        logger: Optional[logging.Logger] = None
    ) -> DeletionStatusStrategy:
        """
        Create or return cached status store.

        Falls back to the in-memory store when Redis is unreachable at
        startup.
        """
        if cls._instance is not None:
            return cls._instance

        logger = logger or logging.getLogger(__name__)

        if backend == StatusBackend.REDIS:
            import redis

            try:
                redis_client = redis.from_url(
                    settings.redis_url,
                    decode_responses=False,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                )

                # Test connection immediately
                redis_client.ping()

                cls._instance = RedisDeletionStatus(redis_client, ttl=settings.status_ttl)
                logger.info("Redis deletion status store initialized")

            except redis.RedisError as e:
                logger.warning("Redis connection failed (%s), falling back to in-memory status store", e)
                cls._instance = InMemoryDeletionStatus()

        elif backend == StatusBackend.MEMORY:
            cls._instance = InMemoryDeletionStatus()
            logger.info("In-memory deletion status store initialized")

        else:
            raise ValueError(f"Unknown status backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
