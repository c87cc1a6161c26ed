"""
Test configuration and fixtures for the shortener core.
This centralizes all test setup, making individual tests clean.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from main import app
from shortener_core.dependencies import get_url_service
from shortener_core.logging_config import setup_logging
from shortener_core.services.url_service import URLService
from shortener_core.status.strategies import InMemoryDeletionStatus
from shortener_core.storage.strategies import InMemoryURLStorage, JournalURLStorage, SQLURLStorage

BASE_URL = "http://localhost:8080"


@pytest.fixture
def logger():
    """Create test logger."""
    return setup_logging(level="DEBUG")


@pytest.fixture
def memory_storage(logger):
    return InMemoryURLStorage(logger=logger)


@pytest.fixture
def journal_path(tmp_path):
    return str(tmp_path / "storage.json")


@pytest.fixture
def journal_storage(journal_path, logger):
    return JournalURLStorage(journal_path, logger=logger)


@pytest.fixture
def sql_storage(tmp_path, logger):
    """
    Relational storage on a throwaway SQLite file.
    Each test gets a fresh database.
    """
    storage = SQLURLStorage(database_url=f"sqlite:///{tmp_path / 'test.db'}", logger=logger)
    yield storage
    asyncio.run(storage.close())


@pytest.fixture(params=["memory", "journal", "sql"])
def storage(request):
    """Every backend must honour the same contract"""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def service(memory_storage, logger):
    return URLService(
        storage=memory_storage,
        base_url=BASE_URL,
        batch_size=2,
        delete_timeout=5.0,
        status_store=InMemoryDeletionStatus(),
        logger=logger,
    )


@pytest.fixture
def client(service):
    """
    Create a test client with the URL service dependency overridden.
    This is the main fixture that API tests will use.
    """
    app.dependency_overrides[get_url_service] = lambda: service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
