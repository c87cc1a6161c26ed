from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from shortener_core.api.v1 import redirect, urls
from shortener_core.config import settings
from shortener_core.dependencies import get_url_service
from shortener_core.exceptions import StorageError, ValidationError
from shortener_core.logging_config import setup_logging

logger = setup_logging(
    level="DEBUG" if settings.debug else settings.log_level,
    log_file=settings.log_file or None,
    json_format=settings.log_json,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s %s starting (%s)", settings.app_name, settings.app_version, settings.environment)
    yield
    # Only shut down the service if a request ever created it
    if get_url_service.cache_info().currsize:
        await get_url_service().aclose()
    logger.info("%s stopped", settings.app_name)


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="A URL shortener service built with FastAPI",
    debug=settings.debug,
    lifespan=lifespan,
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Storage error"})


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(urls.router)
app.include_router(redirect.router)


if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.host, port=settings.port)
