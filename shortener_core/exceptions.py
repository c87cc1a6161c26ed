"""Exceptions shared by the storage backends and the URL service.

Absence of a short id is not an error: lookups return ``None`` / ``False``.
Everything else that can go wrong surfaces as a subclass of ShortenerError.
"""

from typing import List, Optional, Sequence


class ShortenerError(Exception):
    """Base exception for all shortener errors."""
    pass


class ValidationError(ShortenerError):
    """Input rejected before storage was touched (empty URL, empty batch)."""
    pass


class ConflictError(ShortenerError):
    """
    A short id is already stored for a different record.

    Recoverable: the short id (and, once the service has formatted it, the
    short URL) still points at the canonical record, so callers can reuse it.
    For batches ``results`` holds the full response list, conflicting items
    included.
    """

    def __init__(
        self,
        short_ids: Sequence[str],
        short_url: Optional[str] = None,
        results: Optional[list] = None,
    ):
        self.short_ids: List[str] = list(short_ids)
        self.short_url = short_url
        self.results = results
        super().__init__(f"short id conflict: {', '.join(self.short_ids)}")

    @property
    def short_id(self) -> str:
        """First conflicting id (the only one for single saves)"""
        return self.short_ids[0]


class DeletedError(ShortenerError):
    """The short id exists but its owner has deleted it."""

    exists = True

    def __init__(self, short_id: str):
        self.short_id = short_id
        super().__init__(f"short id {short_id} was deleted")


class DeletionTimeoutError(ShortenerError, TimeoutError):
    """The deletion pipeline ran past its deadline."""

    def __init__(self, owner_id: str, processed: int, total: int):
        self.owner_id = owner_id
        self.processed = processed
        self.total = total
        super().__init__(
            f"deletion for user {owner_id} timed out after "
            f"{processed}/{total} ids were submitted to storage"
        )


class StorageError(ShortenerError):
    """Backend I/O or protocol failure; wraps the underlying cause."""

    def __init__(self, operation: str, detail: str = "", cause: Optional[BaseException] = None):
        self.operation = operation
        self.detail = detail
        self.cause = cause
        message = f"{operation} failed"
        if detail:
            message += f" ({detail})"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
