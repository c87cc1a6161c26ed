from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from shortener_core.dependencies import USER_ID_HEADER, get_or_issue_user_id, get_url_service, require_user_id
from shortener_core.exceptions import ConflictError
from shortener_core.models.record import BatchItem
from shortener_core.schemas.url import (
    BatchRequestItem,
    BatchResponseItem,
    DeletionAccepted,
    DeletionStatusResponse,
    ShortenRequest,
    ShortenResponse,
    UserURLResponse,
)
from shortener_core.services.url_service import URLService

router = APIRouter(prefix="/api", tags=["urls"])


@router.post("/shorten", response_model=ShortenResponse, status_code=status.HTTP_201_CREATED)
async def shorten_json(
    payload: ShortenRequest,
    user_id: str = Depends(get_or_issue_user_id),
    url_service: URLService = Depends(get_url_service)
):
    """Create a short URL; 409 with the existing short URL if it is taken"""
    try:
        short_url = await url_service.shorten(payload.url.strip(), user_id)
    except ConflictError as e:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=ShortenResponse(result=e.short_url).model_dump(),
            headers={USER_ID_HEADER: user_id},
        )
    return ShortenResponse(result=short_url)


@router.post("/shorten/batch", response_model=List[BatchResponseItem], status_code=status.HTTP_201_CREATED)
async def shorten_batch(
    payload: List[BatchRequestItem],
    user_id: str = Depends(get_or_issue_user_id),
    url_service: URLService = Depends(get_url_service)
):
    """Shorten a list of URLs; every item is answered even when some conflict"""
    items = [BatchItem(correlation_id=item.correlation_id, original_url=item.original_url.strip()) for item in payload]
    try:
        return await url_service.shorten_batch(items, user_id)
    except ConflictError as e:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=[result.model_dump() for result in e.results],
            headers={USER_ID_HEADER: user_id},
        )


@router.get("/user/urls", response_model=List[UserURLResponse])
async def list_user_urls(
    user_id: str = Depends(require_user_id),
    url_service: URLService = Depends(get_url_service)
):
    """Active URLs of the caller; 204 when there are none"""
    records = await url_service.list_for_user(user_id)
    if not records:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        UserURLResponse(short_url=url_service.short_url(record.id), original_url=record.original_url)
        for record in records
    ]


@router.delete("/user/urls", response_model=DeletionAccepted, status_code=status.HTTP_202_ACCEPTED)
async def delete_user_urls(
    tokens: List[str] = Body(...),
    user_id: str = Depends(require_user_id),
    url_service: URLService = Depends(get_url_service)
):
    """
    Accept a deletion and process it in the background.

    The outcome is available from the status endpoint under the returned
    request id.
    """
    request_id = await url_service.schedule_delete(user_id, tokens)
    return DeletionAccepted(request_id=request_id)


@router.get("/user/urls/deletions/{request_id}", response_model=DeletionStatusResponse)
async def get_deletion_status(
    request_id: str,
    user_id: str = Depends(require_user_id),
    url_service: URLService = Depends(get_url_service)
):
    """Outcome of a background deletion started by the caller"""
    deletion = await url_service.get_deletion_status(request_id, owner_id=user_id)
    if deletion is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Deletion request not found"
        )
    return deletion
