"""Entry point for the upload gateway service."""

import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.exceptions import (
    ChunkPersistError,
    ChunkRelayError,
    ChunkTooLargeError,
    MergeError,
    RemoteUploadError,
    UploadNotFoundError,
    ValidationError,
)
from common.logging_config import setup_logging
from gateway.config import GATEWAY_HOST, GATEWAY_PORT
from gateway.dependencies import get_coordinator
from gateway.routes.upload_routes import router as upload_router
from staging.janitor import StaleUploadSweeper

logger = setup_logging('gateway')
setup_logging('staging')

app = FastAPI(
    title="chunkrelay",
    description="Chunked upload gateway staging large files before handing them to Google Drive",
    version="1.0.0"
)

sweeper: Optional[StaleUploadSweeper] = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Prepare the staging area and start the stale upload sweeper.
    """
    global sweeper

    coordinator = get_coordinator()
    settings = coordinator.settings
    settings.staging_dir.mkdir(parents=True, exist_ok=True)

    logger.info(
        f"Gateway starting up: staging_dir={settings.staging_dir} "
        f"max_chunk_size={settings.max_chunk_size} remote_backend={settings.remote_backend}"
    )

    sweeper = StaleUploadSweeper(
        janitor=coordinator.janitor,
        ttl_seconds=settings.upload_ttl_seconds,
        interval_seconds=settings.sweep_interval_seconds,
    )
    await sweeper.start()


@app.on_event("shutdown")
async def shutdown_event():
    """
    Stop background work and release the remote client.
    """
    logger.info("Gateway shutting down...")

    if sweeper:
        await sweeper.stop()

    await get_coordinator().close()
    logger.info("Remote uploader closed")


def _error_response(request: Request, exc: Exception, status_code: int, code: str, level: str = "warning"):
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{code}: {exc} [request_id={request_id}] path={request.url.path}"
    if level == "error":
        logger.error(message, exc_info=True)
    else:
        logger.warning(message)
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": code})


@app.exception_handler(ChunkTooLargeError)
async def chunk_too_large_handler(request: Request, exc: ChunkTooLargeError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "CHUNK_TOO_LARGE")


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR")


@app.exception_handler(UploadNotFoundError)
async def upload_not_found_handler(request: Request, exc: UploadNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "UPLOAD_NOT_FOUND")


@app.exception_handler(ChunkPersistError)
async def chunk_persist_handler(request: Request, exc: ChunkPersistError):
    return _error_response(request, exc, status.HTTP_503_SERVICE_UNAVAILABLE, "CHUNK_PERSIST_FAILED", "error")


@app.exception_handler(MergeError)
async def merge_error_handler(request: Request, exc: MergeError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "MERGE_FAILED", "error")


@app.exception_handler(RemoteUploadError)
async def remote_upload_handler(request: Request, exc: RemoteUploadError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "REMOTE_UPLOAD_FAILED", "error")


@app.exception_handler(ChunkRelayError)
async def upload_failed_handler(request: Request, exc: ChunkRelayError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "UPLOAD_FAILED", "error")


app.include_router(upload_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "chunkrelay upload gateway", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for container healthchecks.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "gateway"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "gateway.main:app",
        host=GATEWAY_HOST,
        port=GATEWAY_PORT,
    )


if __name__ == "__main__":
    main()
