"""
Batched soft-deletion pipeline.

A producer task streams normalized short ids into a bounded queue; a
consumer task groups them and issues one storage call per group. Both stop
at a shared deadline.

Flow for batch_size=2 and ids a, b, c, d, e:

    producer: a b c d e <end>  ->  queue  ->  consumer: [a b] [c d] [e]

Groups go to storage one at a time, in arrival order. The first failing
group aborts the run; later groups are never sent.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from shortener_core.exceptions import DeletionTimeoutError, StorageError, ValidationError
from shortener_core.storage.strategies import URLStorageStrategy


_END_OF_STREAM = object()


class DeletionPipeline:
    """
    Deadline-bounded producer/consumer for ``delete_user_urls``.

    Cancellation is cooperative: every queue put/get and every storage call
    is bounded by the time left until the deadline. A storage call that is
    still running when the deadline passes is abandoned, not interrupted;
    for thread-backed storages the query itself runs to completion.
    """

    def __init__(
        self,
        storage: URLStorageStrategy,
        batch_size: int,
        base_url: str,
        logger: Optional[logging.Logger] = None,
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.storage = storage
        self.batch_size = batch_size
        self.base_url = base_url.rstrip("/")
        self.logger = logger or logging.getLogger(__name__)

    def normalize(self, token: str) -> str:
        """Strip the base URL from a full short URL; bare ids pass through"""
        if not isinstance(token, str):
            raise ValidationError(f"short id must be a string, got {type(token).__name__}")
        token = token.strip()
        prefix = self.base_url + "/"
        if token.startswith(prefix):
            return token[len(prefix):]
        return token

    async def run(self, owner_id: str, tokens: Sequence[str], timeout: float) -> int:
        """
        Soft-delete ``tokens`` owned by ``owner_id``.

        Returns:
            Number of storage calls issued

        Raises:
            DeletionTimeoutError: deadline passed before every group was stored
            StorageError: a group failed; no later group was attempted
            ValidationError: a token is not a string
        """
        tokens = list(tokens)
        if not tokens:
            return 0

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        queue: asyncio.Queue = asyncio.Queue(maxsize=len(tokens))

        producer = asyncio.create_task(self._produce(tokens, queue, deadline))
        consumer = asyncio.create_task(self._consume(owner_id, queue, deadline, len(tokens)))
        try:
            # A failing producer must surface its own error, not the consumer's timeout
            done, _ = await asyncio.wait({producer, consumer}, return_when=asyncio.FIRST_EXCEPTION)
            if producer in done and producer.exception() is not None:
                raise producer.exception()
            return await consumer
        finally:
            # Neither task may outlive this call
            for task in (producer, consumer):
                if not task.done():
                    task.cancel()
            await asyncio.wait([producer, consumer])

    async def _put(self, queue: asyncio.Queue, item, deadline: float) -> bool:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            return False
        try:
            await asyncio.wait_for(queue.put(item), remaining)
        except asyncio.TimeoutError:
            return False
        return True

    async def _produce(self, tokens: List[str], queue: asyncio.Queue, deadline: float) -> None:
        for token in tokens:
            if not await self._put(queue, self.normalize(token), deadline):
                # Consumer notices the same deadline and reports the timeout
                return
        await self._put(queue, _END_OF_STREAM, deadline)

    async def _consume(self, owner_id: str, queue: asyncio.Queue, deadline: float, total: int) -> int:
        loop = asyncio.get_running_loop()
        group: List[str] = []
        submitted = 0
        calls = 0

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise DeletionTimeoutError(owner_id, submitted, total)
            try:
                item = await asyncio.wait_for(queue.get(), remaining)
            except asyncio.TimeoutError:
                raise DeletionTimeoutError(owner_id, submitted, total) from None

            if item is _END_OF_STREAM:
                break

            group.append(item)
            if len(group) == self.batch_size:
                await self._flush(owner_id, group, submitted, total, deadline)
                submitted += len(group)
                calls += 1
                group = []

        if group:
            await self._flush(owner_id, group, submitted, total, deadline)
            submitted += len(group)
            calls += 1

        self.logger.info("Deleted %d ids for user %s in %d groups", submitted, owner_id, calls)
        return calls

    async def _flush(
        self,
        owner_id: str,
        group: List[str],
        offset: int,
        total: int,
        deadline: float,
    ) -> None:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise DeletionTimeoutError(owner_id, offset, total)

        span = f"user {owner_id}, ids {offset}-{offset + len(group) - 1} of {total}"
        try:
            await asyncio.wait_for(self.storage.delete_user_urls(owner_id, group), remaining)
        except asyncio.TimeoutError:
            self.logger.warning("Deletion deadline passed while storing %s", span)
            raise DeletionTimeoutError(owner_id, offset, total) from None
        except StorageError as e:
            self.logger.error("Deletion group failed for %s: %s", span, e)
            raise StorageError("delete_user_urls", span, e) from e
