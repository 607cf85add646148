"""Pydantic schemas for upload endpoints."""

from typing import List, Optional

from pydantic import BaseModel, Field


class BeginUploadRequest(BaseModel):
    """Request model for registering a resumable upload."""
    original_name: str


class BeginUploadResponse(BaseModel):
    """Response model for a registered resumable upload."""
    upload_id: str
    original_name: str
    max_chunk_size: int


class ChunkAckResponse(BaseModel):
    """Response model for one stored chunk."""
    upload_id: str
    index: int
    path: str
    size: int
    checksum: str


class CompleteUploadRequest(BaseModel):
    """Request model for completing a resumable upload."""
    upload_id: Optional[str] = None
    folder_id: Optional[str] = None
    chunk_count: Optional[int] = None
    original_name: Optional[str] = None


class UploadResultResponse(BaseModel):
    """Response model for a finished or incomplete upload."""
    status: str
    upload_id: str
    file_name: Optional[str] = None
    drive_id: Optional[str] = None
    link_to_file: Optional[str] = None
    link_to_folder: Optional[str] = None
    chunk_count: Optional[int] = None
    missing_chunks: List[int] = Field(default_factory=list)


class UploadStatusResponse(BaseModel):
    """Response model for upload progress."""
    upload_id: str
    original_name: Optional[str] = None
    received_chunks: List[int]
    missing_chunks: Optional[List[int]] = None


class AbortUploadResponse(BaseModel):
    """Response model for an abandoned upload."""
    upload_id: str
    status: str
