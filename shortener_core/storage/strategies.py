"""
URL storage strategies using Strategy Pattern.

Three interchangeable backends behind one interface:
- InMemoryURLStorage: process memory, lost on restart
- JournalURLStorage: append-only JSON-lines file replayed on startup
- SQLURLStorage: relational table with a unique constraint (SQLAlchemy)
"""

import asyncio
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shortener_core.database.connection import Base, create_db_engine, create_session_factory
from shortener_core.database.tables import URLRow
from shortener_core.exceptions import ConflictError, StorageError
from shortener_core.models.record import URLRecord


class URLStorageStrategy(ABC):
    """
    Abstract base class for URL storage strategies.

    Every backend honours the same contract:
    - save / save_batch raise ConflictError when an id is already stored for
      a different record; an identical record is a no-op
    - save_batch persists every non-conflicting record even when it raises
    - get returns None for unknown ids (absence is not an error)
    - delete_user_urls only flips records owned by ``owner_id``

    Implementations must be safe to call from many concurrent requests.
    """

    @abstractmethod
    async def save(self, record: URLRecord) -> None:
        """
        Persist a single record.

        Raises:
            ConflictError: id already maps to a different record
            StorageError: backend failure
        """
        pass

    @abstractmethod
    async def save_batch(self, records: Sequence[URLRecord]) -> None:
        """
        Persist several records.

        Raises:
            ConflictError: listing every colliding id, after the
                non-conflicting records have been stored
            StorageError: backend failure
        """
        pass

    @abstractmethod
    async def get(self, short_id: str) -> Optional[URLRecord]:
        """Get record by short id, None if it was never stored"""
        pass

    @abstractmethod
    async def get_user_urls(self, owner_id: str) -> List[URLRecord]:
        """All records owned by ``owner_id``, deleted ones included"""
        pass

    @abstractmethod
    async def delete_user_urls(self, owner_id: str, short_ids: Sequence[str]) -> None:
        """
        Soft-delete the given ids owned by ``owner_id``.

        Ids that are unknown or owned by someone else are ignored.
        """
        pass

    @abstractmethod
    async def ping(self) -> None:
        """Raise StorageError if the backend is not usable"""
        pass

    async def close(self) -> None:
        """Release files, connections and other resources"""
        pass


class InMemoryURLStorage(URLStorageStrategy):
    """
    In-memory storage using a Python dict.

    Pros:
    - Very fast (no I/O)
    - No external dependencies
    - Good for development and testing

    Cons:
    - Lost on restart
    - Not shared between processes

    A lock guards the dict so request handlers running on different threads
    (or interleaving coroutines) never observe a half-applied batch. The lock
    is never held across an ``await``.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._urls: Dict[str, URLRecord] = {}
        self._lock = threading.Lock()
        self.logger = logger or logging.getLogger(__name__)

    def _persist(self, records: List[URLRecord]) -> None:
        """Hook for durable backends; called under the lock before the index changes"""
        pass

    def _apply(self, records: List[URLRecord]) -> None:
        if not records:
            return
        self._persist(records)
        for record in records:
            self._urls[record.id] = record

    def _partition(self, records: Sequence[URLRecord]):
        """Split records into new ones and conflicting ids (must hold the lock)"""
        new_records: Dict[str, URLRecord] = {}
        conflicts: List[str] = []
        for record in records:
            existing = new_records.get(record.id)
            if existing is None:
                existing = self._urls.get(record.id)
            if existing is None:
                new_records[record.id] = record
            elif existing != record:
                conflicts.append(record.id)
        return list(new_records.values()), conflicts

    async def save(self, record: URLRecord) -> None:
        await self.save_batch([record])

    async def save_batch(self, records: Sequence[URLRecord]) -> None:
        with self._lock:
            new_records, conflicts = self._partition(records)
            self._apply(new_records)

        if conflicts:
            raise ConflictError(conflicts)

    async def get(self, short_id: str) -> Optional[URLRecord]:
        with self._lock:
            return self._urls.get(short_id)

    async def get_user_urls(self, owner_id: str) -> List[URLRecord]:
        with self._lock:
            return [record for record in self._urls.values() if record.owner_id == owner_id]

    async def delete_user_urls(self, owner_id: str, short_ids: Sequence[str]) -> None:
        with self._lock:
            changed = []
            for short_id in dict.fromkeys(short_ids):
                record = self._urls.get(short_id)
                if record is not None and record.owner_id == owner_id and not record.deleted:
                    changed.append(record.mark_deleted())
            self._apply(changed)

    async def ping(self) -> None:
        return None


class JournalURLStorage(InMemoryURLStorage):
    """
    File-backed storage: an append-only log of JSON lines plus an in-memory index.

    On startup every line is replayed oldest to newest, so the last line for
    an id wins. Each write appends its lines (flushed and fsynced) before the
    index is updated, under the same lock, so the file order always matches
    the order in which the index changed. The file is never compacted.

    Line layout: {"id": ..., "url": ..., "user_id": ..., "deleted": ...}
    """

    def __init__(self, path: str, logger: Optional[logging.Logger] = None):
        super().__init__(logger=logger)
        self.path = path
        self._replay()

    def _replay(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            if not os.path.exists(self.path):
                self.logger.info("Journal %s does not exist yet, starting empty", self.path)
                return

            lines = 0
            with open(self.path, "r", encoding="utf-8") as journal:
                for lineno, line in enumerate(journal, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = URLRecord.from_journal(json.loads(line))
                    except (ValueError, KeyError, TypeError) as e:
                        raise StorageError("journal replay", f"{self.path}:{lineno}", e) from e
                    self._urls[record.id] = record
                    lines += 1
        except OSError as e:
            raise StorageError("journal replay", self.path, e) from e

        self.logger.info(
            "Replayed %d journal lines from %s into %d records",
            lines, self.path, len(self._urls),
        )

    def _persist(self, records: List[URLRecord]) -> None:
        payload = "".join(json.dumps(record.to_journal()) + "\n" for record in records)
        try:
            with open(self.path, "a", encoding="utf-8") as journal:
                journal.write(payload)
                journal.flush()
                os.fsync(journal.fileno())
        except OSError as e:
            raise StorageError(
                "journal append", f"{self.path}, ids {[r.id for r in records]}", e
            ) from e

    async def ping(self) -> None:
        target = self.path if os.path.exists(self.path) else os.path.dirname(os.path.abspath(self.path))
        if not os.access(target, os.W_OK):
            raise StorageError("ping", f"journal {self.path} is not writable")


class SQLURLStorage(URLStorageStrategy):
    """
    Relational storage via SQLAlchemy (PostgreSQL in production, SQLite in tests).

    The unique constraint on ``urls.short_url`` decides collisions: inserts
    are attempted blindly and an IntegrityError is turned into ConflictError,
    unless the stored row turns out to be identical (then it is a no-op).
    Each batch record is inserted in its own transaction so one collision
    does not roll back its neighbours.

    Queries are blocking, so they run in worker threads; the engine's
    connection pool bounds how many run at once. Concurrency control is
    left to the database.
    """

    def __init__(
        self,
        database_url: str = "",
        pool_size: int = 5,
        max_overflow: int = 10,
        engine: Optional[Engine] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.engine = engine or create_db_engine(database_url, pool_size, max_overflow)
        self._sessions = create_session_factory(self.engine)
        self._init_database()

    def _init_database(self) -> None:
        """Create the urls table and its index if they don't exist"""
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageError("create tables", str(self.engine.url), e) from e
        self.logger.info("Relational storage ready at %s", self.engine.url.render_as_string(hide_password=True))

    async def _run(self, operation: str, detail: str, func, *args):
        """Run a blocking DB call in a thread, mapping driver errors to StorageError"""
        try:
            return await asyncio.to_thread(func, *args)
        except SQLAlchemyError as e:
            raise StorageError(operation, detail, e) from e

    def _insert_one(self, record: URLRecord) -> bool:
        """Insert a record; return True if it conflicts with a stored one"""
        with self._sessions() as session:
            session.add(URLRow.from_record(record))
            try:
                session.commit()
                return False
            except IntegrityError as e:
                session.rollback()
                violation = e

            existing = session.execute(
                select(URLRow).where(URLRow.short_url == record.id)
            ).scalar_one_or_none()

        if existing is None:
            # Not a short_url collision (e.g. NOT NULL violation)
            raise StorageError("save", f"id {record.id}", violation)
        return existing.to_record() != record

    def _insert_many(self, records: Sequence[URLRecord]) -> List[str]:
        return [record.id for record in records if self._insert_one(record)]

    async def save(self, record: URLRecord) -> None:
        if await self._run("save", f"id {record.id}", self._insert_one, record):
            raise ConflictError([record.id])

    async def save_batch(self, records: Sequence[URLRecord]) -> None:
        detail = f"batch of {len(records)}"
        conflicts = await self._run("save_batch", detail, self._insert_many, records)
        if conflicts:
            raise ConflictError(conflicts)

    def _select_one(self, short_id: str) -> Optional[URLRecord]:
        with self._sessions() as session:
            row = session.execute(
                select(URLRow).where(URLRow.short_url == short_id)
            ).scalar_one_or_none()
            return row.to_record() if row is not None else None

    async def get(self, short_id: str) -> Optional[URLRecord]:
        return await self._run("get", f"id {short_id}", self._select_one, short_id)

    def _select_user(self, owner_id: str) -> List[URLRecord]:
        with self._sessions() as session:
            rows = session.execute(
                select(URLRow).where(URLRow.user_id == owner_id).order_by(URLRow.id)
            ).scalars()
            return [row.to_record() for row in rows]

    async def get_user_urls(self, owner_id: str) -> List[URLRecord]:
        return await self._run("get_user_urls", f"user {owner_id}", self._select_user, owner_id)

    def _mark_deleted(self, owner_id: str, short_ids: List[str]) -> None:
        with self._sessions() as session:
            session.execute(
                update(URLRow)
                .where(URLRow.short_url.in_(short_ids), URLRow.user_id == owner_id)
                .values(is_deleted=True)
            )
            session.commit()

    async def delete_user_urls(self, owner_id: str, short_ids: Sequence[str]) -> None:
        if not short_ids:
            return
        ids = list(short_ids)
        detail = f"user {owner_id}, ids {ids[0]}..{ids[-1]}"
        await self._run("delete_user_urls", detail, self._mark_deleted, owner_id, ids)

    def _select_one_literal(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    async def ping(self) -> None:
        await self._run("ping", self.engine.url.render_as_string(hide_password=True), self._select_one_literal)

    async def close(self) -> None:
        self.engine.dispose()
