"""
FastAPI dependencies for dependency injection.

This module provides singleton instances of storage, status store and the
URL service, plus the caller identity handed over by the authentication
layer in front of the app.
"""

import uuid
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, Response, status

from shortener_core.config import settings
from shortener_core.logging_config import get_logger
from shortener_core.services.url_service import URLService
from shortener_core.status.factory import DeletionStatusFactory, StatusBackend
from shortener_core.status.strategies import DeletionStatusStrategy
from shortener_core.storage.factory import StorageBackend, URLStorageFactory
from shortener_core.storage.strategies import URLStorageStrategy


USER_ID_HEADER = "X-User-ID"


@lru_cache()
def get_storage() -> URLStorageStrategy:
    """
    Get storage instance (singleton).

    Factory gets config from settings internally.
    """
    backend = StorageBackend(settings.storage_backend)
    return URLStorageFactory.create(backend, logger=get_logger("storage"))


@lru_cache()
def get_status_store() -> DeletionStatusStrategy:
    """Get deletion status store instance (singleton)."""
    backend = StatusBackend(settings.status_backend)
    return DeletionStatusFactory.create(backend, logger=get_logger("status"))


@lru_cache()
def get_url_service() -> URLService:
    """
    Get URLService with all dependencies injected (singleton).

    Shared across requests because it owns the background deletion tasks.
    """
    return URLService(
        storage=get_storage(),
        base_url=settings.base_url,
        batch_size=settings.delete_batch_size,
        delete_timeout=settings.delete_timeout,
        status_store=get_status_store(),
        logger=get_logger("service"),
    )


def get_or_issue_user_id(
    response: Response,
    user_id: Optional[str] = Header(None, alias=USER_ID_HEADER),
) -> str:
    """Caller identity for creating routes; anonymous callers get a fresh id"""
    if not user_id:
        user_id = uuid.uuid4().hex
    response.headers[USER_ID_HEADER] = user_id
    return user_id


def require_user_id(user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> str:
    """Caller identity for routes that only make sense for a known user"""
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return user_id
