"""Upload API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from common.types import UploadResult
from gateway.dependencies import get_coordinator
from gateway.schemas.common import ErrorResponse
from gateway.schemas.uploads import (
    AbortUploadResponse,
    BeginUploadRequest,
    BeginUploadResponse,
    ChunkAckResponse,
    CompleteUploadRequest,
    UploadResultResponse,
    UploadStatusResponse,
)
from gateway.services.upload_coordinator import UploadCoordinator

router = APIRouter(
    prefix="/uploads",
    tags=["Uploads"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)


def _result_response(result: UploadResult) -> UploadResultResponse:
    return UploadResultResponse(
        status=result.status,
        upload_id=result.upload_id,
        file_name=result.file_name,
        drive_id=result.remote_id,
        link_to_file=result.link_to_file,
        link_to_folder=result.link_to_folder,
        chunk_count=result.chunk_count,
        missing_chunks=result.missing_chunks,
    )


@router.post("/large-file", response_model=UploadResultResponse, status_code=status.HTTP_201_CREATED)
async def upload_large_file(
    file: Optional[UploadFile] = File(None),
    folder_id: Optional[str] = Form(None),
    chunk_size: Optional[int] = Form(None),
    coordinator: UploadCoordinator = Depends(get_coordinator)
):
    """
    Upload a whole file; the server splits, stages, merges and forwards it.

    Parameters:
        - file: File to upload (multipart/form-data)
        - folder_id: Destination folder in the remote store
        - chunk_size: Optional chunk size in bytes, capped at the configured maximum

    Returns:
        - status, drive_id, links and chunk_count of the stored file

    Raises:
        - 400: Missing file, name or folder
        - 502: Remote store rejected the file
        - 503: A chunk could not be staged within its retry budget
    """
    data = await file.read() if file is not None else b""
    file_name = file.filename if file is not None else None

    result = await coordinator.upload_large_file(
        data=data,
        file_name=file_name,
        destination_id=folder_id,
        chunk_size=chunk_size,
    )
    return _result_response(result)


@router.post("", response_model=BeginUploadResponse, status_code=status.HTTP_201_CREATED)
async def begin_upload(
    request: BeginUploadRequest,
    coordinator: UploadCoordinator = Depends(get_coordinator)
):
    """
    Register a resumable upload and hand out its upload_id.

    Returns:
        - upload_id: Opaque id to send with every chunk and with the completion call
        - max_chunk_size: Largest chunk the server accepts
    """
    manifest = await coordinator.begin_upload(request.original_name)
    return BeginUploadResponse(
        upload_id=manifest.upload_id,
        original_name=manifest.original_name,
        max_chunk_size=coordinator.settings.max_chunk_size,
    )


@router.post("/chunk", response_model=ChunkAckResponse, status_code=status.HTTP_201_CREATED)
async def upload_chunk(
    chunk: Optional[UploadFile] = File(None),
    upload_id: Optional[str] = Form(None),
    index: Optional[int] = Form(None),
    original_name: Optional[str] = Form(None),
    coordinator: UploadCoordinator = Depends(get_coordinator)
):
    """
    Store one chunk of a resumable upload.

    Parameters:
        - chunk: Chunk bytes (multipart/form-data)
        - upload_id: Upload the chunk belongs to
        - index: Zero-based chunk position
        - original_name: Optional final file name, recorded on first use

    Raises:
        - 400: Missing chunk, index or upload_id
        - 413: Chunk larger than the configured maximum
    """
    data = await chunk.read() if chunk is not None else b""

    ack = await coordinator.upload_file_chunk(
        data=data,
        index=index,
        upload_id=upload_id,
        original_name=original_name,
    )
    return ChunkAckResponse(
        upload_id=upload_id,
        index=ack.index,
        path=ack.path,
        size=ack.size,
        checksum=ack.checksum,
    )


@router.post("/complete", response_model=UploadResultResponse)
async def complete_upload(
    request: CompleteUploadRequest,
    response: Response,
    coordinator: UploadCoordinator = Depends(get_coordinator)
):
    """
    Merge a resumable upload and forward it to the remote store.

    Returns:
        - 200 with status "success" once the file is stored
        - 409 with status "fail" and missing_chunks while chunks are missing;
          post them and call again

    Raises:
        - 400: Missing upload_id, folder_id or chunk_count
        - 500: Merge failed
        - 502: Remote store rejected the file
    """
    result = await coordinator.complete_upload(
        upload_id=request.upload_id,
        destination_id=request.folder_id,
        chunk_count=request.chunk_count,
        original_name=request.original_name,
    )

    if not result.succeeded:
        response.status_code = status.HTTP_409_CONFLICT
    return _result_response(result)


@router.get("/{upload_id}", response_model=UploadStatusResponse)
async def get_upload_status(
    upload_id: str,
    chunk_count: Optional[int] = Query(None, description="Expected chunk count, to list missing chunks"),
    coordinator: UploadCoordinator = Depends(get_coordinator)
):
    """
    Report the chunks received so far for a resumable upload.

    Raises:
        - 404: Unknown upload_id
    """
    progress = await coordinator.get_upload_status(upload_id, chunk_count)
    return UploadStatusResponse(
        upload_id=progress.upload_id,
        original_name=progress.original_name,
        received_chunks=progress.received_chunks,
        missing_chunks=progress.missing_chunks,
    )


@router.delete("/{upload_id}", response_model=AbortUploadResponse)
async def abort_upload(
    upload_id: str,
    coordinator: UploadCoordinator = Depends(get_coordinator)
):
    """
    Abandon a resumable upload and delete its staged chunks.

    Raises:
        - 404: Unknown upload_id
    """
    await coordinator.abort_upload(upload_id)
    return AbortUploadResponse(upload_id=upload_id, status="aborted")
