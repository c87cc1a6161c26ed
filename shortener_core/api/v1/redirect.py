from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse

from shortener_core.dependencies import USER_ID_HEADER, get_or_issue_user_id, get_url_service
from shortener_core.exceptions import ConflictError, DeletedError
from shortener_core.services.url_service import URLService

router = APIRouter(tags=["redirect"])


@router.post("/", response_class=PlainTextResponse, status_code=status.HTTP_201_CREATED)
async def shorten_text(
    request: Request,
    user_id: str = Depends(get_or_issue_user_id),
    url_service: URLService = Depends(get_url_service)
):
    """Plain-text variant: the body is the URL, the response is the short URL"""
    body = (await request.body()).decode("utf-8").strip()
    headers = {USER_ID_HEADER: user_id}
    try:
        short_url = await url_service.shorten(body, user_id)
    except ConflictError as e:
        return PlainTextResponse(e.short_url, status_code=status.HTTP_409_CONFLICT, headers=headers)
    return PlainTextResponse(short_url, status_code=status.HTTP_201_CREATED, headers=headers)


@router.get("/ping")
async def ping(url_service: URLService = Depends(get_url_service)):
    """Storage health check; StorageError is turned into a 500 by the app"""
    await url_service.ping()
    return {"status": "ok"}


@router.get("/{short_id}")
async def redirect_to_original(
    short_id: str,
    url_service: URLService = Depends(get_url_service)
):
    """
    Redirect to the original URL.

    404 means the id was never stored, 410 means its owner deleted it.
    """
    try:
        original_url, exists = await url_service.resolve(short_id)
    except DeletedError:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="This URL is no longer available as it has been deleted by the owner"
        )

    if not exists:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="URL not found"
        )

    return RedirectResponse(url=original_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
