"""
Tests for URL service business logic.
"""
import asyncio
import hashlib

import pytest

from shortener_core.exceptions import ConflictError, DeletedError, StorageError, ValidationError
from shortener_core.models.record import BatchItem, DeletionState, URLRecord
from shortener_core.services.url_service import URLService
from shortener_core.status.strategies import InMemoryDeletionStatus
from shortener_core.storage.strategies import InMemoryURLStorage

from conftest import BASE_URL


def md5_id(url):
    return hashlib.md5(url.encode("utf-8")).hexdigest()[:8]


class BrokenDeleteStorage(InMemoryURLStorage):
    async def delete_user_urls(self, owner_id, short_ids):
        raise StorageError("delete_user_urls", "connection reset")


class CrashingDeleteStorage(InMemoryURLStorage):
    async def delete_user_urls(self, owner_id, short_ids):
        raise RuntimeError("driver exploded")


class TestShorten:
    """Single URL creation"""

    def test_returns_short_url(self, service):
        short_url = asyncio.run(service.shorten("https://example.com", "user1"))

        assert short_url == f"{BASE_URL}/{md5_id('https://example.com')}"

    def test_record_is_stored_under_owner(self, service, memory_storage):
        asyncio.run(service.shorten("https://example.com", "user1"))

        stored = asyncio.run(memory_storage.get(md5_id("https://example.com")))
        assert stored == URLRecord(id=md5_id("https://example.com"), original_url="https://example.com", owner_id="user1")

    def test_empty_url_rejected_before_storage(self, service, memory_storage):
        with pytest.raises(ValidationError):
            asyncio.run(service.shorten("", "user1"))

        assert asyncio.run(memory_storage.get_user_urls("user1")) == []

    def test_same_url_same_owner_is_idempotent(self, service):
        first = asyncio.run(service.shorten("https://example.com", "user1"))
        second = asyncio.run(service.shorten("https://example.com", "user1"))

        assert first == second

    def test_conflict_still_returns_short_url(self, service):
        short_url = asyncio.run(service.shorten("https://example.com", "alice"))

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(service.shorten("https://example.com", "bob"))

        assert exc_info.value.short_url == short_url
        assert exc_info.value.short_id == md5_id("https://example.com")

    def test_base_url_trailing_slash(self, memory_storage):
        service = URLService(memory_storage, base_url=BASE_URL + "/")

        short_url = asyncio.run(service.shorten("https://example.com", "user1"))

        assert short_url == f"{BASE_URL}/{md5_id('https://example.com')}"


class TestShortenBatch:
    """Batch creation and partial conflicts"""

    def test_results_keep_correlation_ids(self, service):
        items = [
            BatchItem(correlation_id="1", original_url="https://one.example.com"),
            BatchItem(correlation_id="2", original_url="https://two.example.com"),
        ]

        results = asyncio.run(service.shorten_batch(items, "user1"))

        assert [r.correlation_id for r in results] == ["1", "2"]
        assert results[1].short_url == f"{BASE_URL}/{md5_id('https://two.example.com')}"

    def test_empty_batch_rejected(self, service):
        with pytest.raises(ValidationError):
            asyncio.run(service.shorten_batch([], "user1"))

    def test_empty_url_in_batch_rejected(self, service, memory_storage):
        items = [
            BatchItem(correlation_id="1", original_url="https://one.example.com"),
            BatchItem(correlation_id="2", original_url=""),
        ]

        with pytest.raises(ValidationError):
            asyncio.run(service.shorten_batch(items, "user1"))

        assert asyncio.run(memory_storage.get_user_urls("user1")) == []

    def test_partial_conflict_returns_every_result(self, service, memory_storage):
        asyncio.run(service.shorten("https://two.example.com", "someone-else"))
        items = [
            BatchItem(correlation_id="a", original_url="https://one.example.com"),
            BatchItem(correlation_id="b", original_url="https://two.example.com"),
            BatchItem(correlation_id="c", original_url="https://three.example.com"),
        ]

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(service.shorten_batch(items, "user1"))

        error = exc_info.value
        assert error.short_ids == [md5_id("https://two.example.com")]
        assert [r.correlation_id for r in error.results] == ["a", "b", "c"]
        assert {r.id for r in asyncio.run(memory_storage.get_user_urls("user1"))} == {
            md5_id("https://one.example.com"),
            md5_id("https://three.example.com"),
        }


class TestResolve:
    """Lookups distinguish missing from deleted"""

    def test_existing(self, service):
        asyncio.run(service.shorten("https://example.com", "user1"))

        assert asyncio.run(service.resolve(md5_id("https://example.com"))) == ("https://example.com", True)

    def test_missing(self, service):
        assert asyncio.run(service.resolve("00000000")) == (None, False)

    def test_deleted(self, service):
        asyncio.run(service.shorten("https://example.com", "user1"))
        asyncio.run(service.delete_batch("user1", [md5_id("https://example.com")]))

        with pytest.raises(DeletedError) as exc_info:
            asyncio.run(service.resolve(md5_id("https://example.com")))

        assert exc_info.value.exists is True
        assert exc_info.value.short_id == md5_id("https://example.com")


class TestListForUser:
    """Active listings"""

    def test_excludes_deleted_and_foreign_records(self, service):
        for owner, url in [
            ("alice", "https://a1.example.com"),
            ("alice", "https://a2.example.com"),
            ("bob", "https://b1.example.com"),
        ]:
            asyncio.run(service.shorten(url, owner))
        asyncio.run(service.delete_batch("alice", [f"{BASE_URL}/{md5_id('https://a1.example.com')}"]))

        records = asyncio.run(service.list_for_user("alice"))

        assert [r.original_url for r in records] == ["https://a2.example.com"]
        assert all(r.owner_id == "alice" for r in records)

    def test_unknown_user(self, service):
        assert asyncio.run(service.list_for_user("nobody")) == []


class TestBackgroundDeletion:
    """schedule_delete records its outcome in the status store"""

    def test_successful_deletion_is_recorded(self, service):
        async def scenario():
            short_url = await service.shorten("https://example.com", "user1")
            request_id = await service.schedule_delete("user1", [short_url])
            pending = await service.get_deletion_status(request_id)
            await service.aclose()
            return pending, await service.get_deletion_status(request_id)

        pending, final = asyncio.run(scenario())

        assert pending.state == DeletionState.PENDING
        assert pending.submitted == 1
        assert final.state == DeletionState.DONE
        assert final.error is None

    def test_failure_is_recorded_not_lost(self, logger):
        service = URLService(
            BrokenDeleteStorage(),
            base_url=BASE_URL,
            status_store=InMemoryDeletionStatus(),
            logger=logger,
        )

        async def scenario():
            request_id = await service.schedule_delete("user1", ["abc12345"])
            await service.aclose()
            return await service.get_deletion_status(request_id)

        status = asyncio.run(scenario())

        assert status.state == DeletionState.FAILED
        assert "connection reset" in status.error

    def test_unexpected_error_is_recorded_too(self, logger):
        service = URLService(
            CrashingDeleteStorage(),
            base_url=BASE_URL,
            status_store=InMemoryDeletionStatus(),
            logger=logger,
        )

        async def scenario():
            request_id = await service.schedule_delete("user1", ["abc12345"])
            await service.aclose()
            return await service.get_deletion_status(request_id)

        status = asyncio.run(scenario())

        assert status.state == DeletionState.FAILED
        assert status.error == "driver exploded"

    def test_status_is_private_to_owner(self, service):
        async def scenario():
            request_id = await service.schedule_delete("user1", ["abc12345"])
            await service.aclose()
            return (
                await service.get_deletion_status(request_id, owner_id="user1"),
                await service.get_deletion_status(request_id, owner_id="intruder"),
            )

        own, foreign = asyncio.run(scenario())

        assert own is not None
        assert foreign is None

    def test_unknown_request(self, service):
        assert asyncio.run(service.get_deletion_status("nope")) is None
