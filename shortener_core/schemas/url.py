from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shortener_core.models.record import DeletionState


class ShortenRequest(BaseModel):
    url: str = Field(..., description="The original URL to be shortened")


class ShortenResponse(BaseModel):
    result: str = Field(..., description="Short URL")


class BatchRequestItem(BaseModel):
    correlation_id: str
    original_url: str


class BatchResponseItem(BaseModel):
    correlation_id: str
    short_url: str

    model_config = ConfigDict(from_attributes=True)


class UserURLResponse(BaseModel):
    short_url: str
    original_url: str


class DeletionAccepted(BaseModel):
    request_id: str


class DeletionStatusResponse(BaseModel):
    """Outcome of a background deletion request"""
    request_id: str
    state: DeletionState
    submitted: int
    error: Optional[str] = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
