from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class URLRecord(BaseModel):
    """
    A stored short URL mapping.

    ``id`` is derived from ``original_url`` and never changes. ``deleted``
    only ever goes from False to True.
    """

    id: str = Field(..., description="8-character short identifier")
    original_url: str = Field(..., description="The URL that was shortened")
    owner_id: str = Field(..., description="User that created the mapping")
    deleted: bool = Field(False, description="Soft-delete flag")

    model_config = ConfigDict(frozen=True)

    def to_journal(self) -> dict:
        """Serialize to the journal line layout"""
        return {
            "id": self.id,
            "url": self.original_url,
            "user_id": self.owner_id,
            "deleted": self.deleted,
        }

    @classmethod
    def from_journal(cls, data: dict) -> "URLRecord":
        return cls(
            id=data["id"],
            original_url=data["url"],
            owner_id=data["user_id"],
            deleted=bool(data.get("deleted", False)),
        )

    def mark_deleted(self) -> "URLRecord":
        return self.model_copy(update={"deleted": True})


class BatchItem(BaseModel):
    """One entry of a batch shorten request"""
    correlation_id: str
    original_url: str


class BatchResult(BaseModel):
    """Short URL produced for one batch entry"""
    correlation_id: str
    short_url: str


class DeletionState(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class DeletionStatus(BaseModel):
    """
    Outcome of a background deletion request.

    Written when the request is accepted and again when the pipeline
    finishes, so the caller can observe failures after the HTTP response
    has already been sent.
    """

    request_id: str
    owner_id: str
    state: DeletionState = DeletionState.PENDING
    submitted: int = 0
    error: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
