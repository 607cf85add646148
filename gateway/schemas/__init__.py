"""Pydantic schemas for API requests and responses."""

from gateway.schemas.uploads import (
    AbortUploadResponse,
    BeginUploadRequest,
    BeginUploadResponse,
    ChunkAckResponse,
    CompleteUploadRequest,
    UploadResultResponse,
    UploadStatusResponse,
)
from gateway.schemas.common import ErrorResponse

__all__ = [
    "AbortUploadResponse",
    "BeginUploadRequest",
    "BeginUploadResponse",
    "ChunkAckResponse",
    "CompleteUploadRequest",
    "UploadResultResponse",
    "UploadStatusResponse",
    "ErrorResponse",
]
