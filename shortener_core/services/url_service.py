import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Set, Tuple

from shortener_core.exceptions import ConflictError, DeletedError, ShortenerError, ValidationError
from shortener_core.models.record import BatchItem, BatchResult, DeletionState, DeletionStatus, URLRecord
from shortener_core.services.deletion import DeletionPipeline
from shortener_core.services.short_id import generate_short_id
from shortener_core.status.strategies import DeletionStatusStrategy, InMemoryDeletionStatus
from shortener_core.storage.strategies import URLStorageStrategy


class URLService:
    """
    URL Service with dependency injection for storage and status store.

    This follows the Dependency Injection pattern:
    - Storage and status strategies are injected (not created internally)
    - Easy to test (inject in-memory or fake storages)
    - Flexible (swap backends without changing code)

    One instance is shared by all requests: it tracks the background
    deletions it starts so they can be awaited on shutdown.
    """

    def __init__(
        self,
        storage: URLStorageStrategy,
        base_url: str,
        batch_size: int = 10,
        delete_timeout: float = 30.0,
        status_store: Optional[DeletionStatusStrategy] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize URL service with dependencies.

        Args:
            storage: URL storage strategy
            base_url: Prefix of every short URL (trailing slash ignored)
            batch_size: Ids per storage call in the deletion pipeline
            delete_timeout: Seconds a deletion run may take
            status_store: Where background deletion outcomes are recorded
            logger: Logger for this service and its pipeline
        """
        self.storage = storage
        self.base_url = base_url.rstrip("/")
        self.delete_timeout = delete_timeout
        self.status_store = status_store or InMemoryDeletionStatus()
        self.logger = logger or logging.getLogger(__name__)
        self.pipeline = DeletionPipeline(storage, batch_size, self.base_url, logger=self.logger)
        self._tasks: Set[asyncio.Task] = set()

    def short_url(self, short_id: str) -> str:
        return f"{self.base_url}/{short_id}"

    async def shorten(self, url: str, owner_id: str) -> str:
        """
        Create a short URL for ``url`` owned by ``owner_id``.

        Returns the full short URL. If the id is already taken the
        ConflictError is re-raised with ``short_url`` filled in, since the
        existing mapping is still the canonical short form.
        """
        if not url:
            raise ValidationError("empty URL")

        short_id = generate_short_id(url)
        short_url = self.short_url(short_id)
        record = URLRecord(id=short_id, original_url=url, owner_id=owner_id)

        try:
            await self.storage.save(record)
        except ConflictError as e:
            e.short_url = short_url
            self.logger.debug("Short id %s already stored for %s", short_id, url)
            raise

        self.logger.debug("Created %s -> %s for user %s", short_id, url, owner_id)
        return short_url

    async def shorten_batch(self, items: Sequence[BatchItem], owner_id: str) -> List[BatchResult]:
        """
        Shorten every item of a batch.

        On a partial conflict the non-conflicting items are stored anyway and
        the raised ConflictError carries the complete ``results`` list.
        """
        if not items:
            raise ValidationError("empty batch")

        records = []
        results = []
        for item in items:
            if not item.original_url:
                raise ValidationError(f"empty URL in batch item {item.correlation_id!r}")
            short_id = generate_short_id(item.original_url)
            records.append(URLRecord(id=short_id, original_url=item.original_url, owner_id=owner_id))
            results.append(BatchResult(correlation_id=item.correlation_id, short_url=self.short_url(short_id)))

        try:
            await self.storage.save_batch(records)
        except ConflictError as e:
            e.results = results
            raise

        return results

    async def resolve(self, short_id: str) -> Tuple[Optional[str], bool]:
        """
        Look up the original URL.

        Returns:
            (original_url, True) if found, (None, False) if never stored

        Raises:
            DeletedError: the record exists but was soft-deleted
        """
        record = await self.storage.get(short_id)
        if record is None:
            return None, False
        if record.deleted:
            raise DeletedError(short_id)
        return record.original_url, True

    async def list_for_user(self, owner_id: str) -> List[URLRecord]:
        """Active (not deleted) records of a user"""
        records = await self.storage.get_user_urls(owner_id)
        return [record for record in records if not record.deleted]

    async def delete_batch(
        self,
        owner_id: str,
        tokens: Sequence[str],
        timeout: Optional[float] = None,
    ) -> int:
        """
        Soft-delete short URLs or bare ids owned by ``owner_id`` and wait for it.

        Returns the number of storage calls issued.
        """
        if timeout is None:
            timeout = self.delete_timeout
        return await self.pipeline.run(owner_id, tokens, timeout)

    async def schedule_delete(self, owner_id: str, tokens: Sequence[str]) -> str:
        """
        Accept a deletion and run it in the background.

        Returns a request id; the outcome is written to the status store
        and can be read back with get_deletion_status().
        """
        status = DeletionStatus(
            request_id=uuid.uuid4().hex,
            owner_id=owner_id,
            submitted=len(tokens),
        )
        await self.status_store.put(status)

        task = asyncio.create_task(self._run_scheduled(status, list(tokens)))
        self._tasks.add(task)
        task.add_done_callback(self._task_finished)
        return status.request_id

    async def _run_scheduled(self, status: DeletionStatus, tokens: List[str]) -> None:
        try:
            await self.delete_batch(status.owner_id, tokens)
        except ShortenerError as e:
            self.logger.error("Background deletion %s failed: %s", status.request_id, e)
            final = self._finished(status, DeletionState.FAILED, str(e))
        except Exception as e:
            self.logger.exception("Background deletion %s crashed", status.request_id)
            final = self._finished(status, DeletionState.FAILED, str(e) or type(e).__name__)
        else:
            final = self._finished(status, DeletionState.DONE)
        await self.status_store.put(final)

    @staticmethod
    def _finished(status: DeletionStatus, state: DeletionState, error: Optional[str] = None) -> DeletionStatus:
        return status.model_copy(update={
            "state": state,
            "error": error,
            "updated_at": datetime.now(timezone.utc),
        })

    def _task_finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # Only reachable when the status store itself failed
            self.logger.error("Could not record deletion outcome: %s", error)

    async def get_deletion_status(
        self,
        request_id: str,
        owner_id: Optional[str] = None,
    ) -> Optional[DeletionStatus]:
        """Status of a background deletion; None if unknown or owned by someone else"""
        status = await self.status_store.get(request_id)
        if status is None:
            return None
        if owner_id is not None and status.owner_id != owner_id:
            return None
        return status

    async def ping(self) -> None:
        await self.storage.ping()

    async def aclose(self) -> None:
        """Wait for background deletions, then release storage resources"""
        if self._tasks:
            await asyncio.wait(set(self._tasks))
        await self.storage.close()
