"""
Deletion status strategies using Strategy Pattern.

Background deletions finish after the HTTP response is gone, so their
outcome is written here where the caller can still read it:
- InMemoryDeletionStatus: single process, development/testing
- RedisDeletionStatus: shared between workers, expires after a TTL
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from shortener_core.exceptions import StorageError
from shortener_core.models.record import DeletionStatus


class DeletionStatusStrategy(ABC):
    """Abstract base class for deletion status stores"""

    @abstractmethod
    async def put(self, status: DeletionStatus) -> None:
        """
        Store (or overwrite) the status of a deletion request.

        Raises:
            StorageError: the status could not be written
        """
        pass

    @abstractmethod
    async def get(self, request_id: str) -> Optional[DeletionStatus]:
        """Get status by request id, None if unknown or expired"""
        pass


class InMemoryDeletionStatus(DeletionStatusStrategy):
    """
    In-memory status store using Python dict.

    Cons:
    - Not shared between worker processes
    - Lost on restart
    - No TTL enforcement
    """

    def __init__(self):
        self._statuses: Dict[str, DeletionStatus] = {}
        self._lock = threading.Lock()

    async def put(self, status: DeletionStatus) -> None:
        with self._lock:
            self._statuses[status.request_id] = status

    async def get(self, request_id: str) -> Optional[DeletionStatus]:
        with self._lock:
            return self._statuses.get(request_id)


class RedisDeletionStatus(DeletionStatusStrategy):
    """
    Redis status store.

    Each status is one JSON string under ``deletion:<request_id>`` written
    with SETEX, so finished requests disappear after ``ttl`` seconds.
    """

    KEY_PREFIX = "deletion:"

    def __init__(self, redis_client, ttl: int = 86400):
        """
        Args:
            redis_client: Redis client instance (redis.Redis)
            ttl: Seconds a status is kept
        """
        self.redis = redis_client
        self.ttl = ttl

    def _key(self, request_id: str) -> str:
        return f"{self.KEY_PREFIX}{request_id}"

    async def put(self, status: DeletionStatus) -> None:
        try:
            self.redis.setex(self._key(status.request_id), self.ttl, status.model_dump_json())
        except Exception as e:
            raise StorageError("status put", f"request {status.request_id}", e) from e

    async def get(self, request_id: str) -> Optional[DeletionStatus]:
        try:
            value = self.redis.get(self._key(request_id))
        except Exception as e:
            raise StorageError("status get", f"request {request_id}", e) from e
        if value is None:
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return DeletionStatus.model_validate_json(value)
