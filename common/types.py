"""Shared data type definitions (Chunk, ChunkRef, ChunkAck, UploadResult, etc.)."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

STATUS_SUCCESS = "success"
STATUS_FAIL = "fail"


@dataclass(frozen=True)
class Chunk:
    """
    One in-memory slice of an upload buffer.
    """
    index: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ChunkRef:
    """
    Reference to a chunk persisted in the staging area.
    """
    upload_id: str
    index: int
    path: Path


@dataclass(frozen=True)
class ChunkAck:
    """
    Acknowledgement returned to a client after one chunk is persisted.
    """
    index: int
    path: str
    size: int
    checksum: str


@dataclass(frozen=True)
class RemoteFile:
    """
    Object created in the remote store.
    """
    file_name: str
    remote_id: str


@dataclass(frozen=True)
class UploadManifest:
    """
    Per-upload record kept next to the staged chunks.
    """
    upload_id: str
    original_name: Optional[str]
    created_at: str


@dataclass
class UploadResult:
    """
    Outcome of a single-shot or completed resumable upload.
    """
    status: str
    upload_id: str
    file_name: Optional[str] = None
    remote_id: Optional[str] = None
    link_to_file: Optional[str] = None
    link_to_folder: Optional[str] = None
    chunk_count: Optional[int] = None
    missing_chunks: List[int] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS


@dataclass
class UploadProgress:
    """
    Chunks received so far for a resumable upload.
    """
    upload_id: str
    original_name: Optional[str]
    received_chunks: List[int]
    missing_chunks: Optional[List[int]] = None
