"""Configuration settings for the upload gateway."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common.constants import (
    CHUNK_WRITE_BACKOFF_SECONDS,
    CHUNK_WRITE_MAX_ATTEMPTS,
    DEFAULT_LOCAL_REMOTE_ROOT,
    DEFAULT_STAGING_DIR,
    DRIVE_API_BASE,
    DRIVE_LINK_HOST,
    MAX_CHUNK_SIZE_BYTES,
    REMOTE_TIMEOUT_SECONDS,
    SWEEP_INTERVAL_SECONDS,
    UPLOAD_TTL_SECONDS,
)


GATEWAY_HOST = os.environ.get("CHUNKRELAY_HOST", "0.0.0.0")

GATEWAY_PORT = int(os.environ.get("CHUNKRELAY_PORT", "8000"))

REMOTE_BACKEND_DRIVE = "drive"
REMOTE_BACKEND_LOCAL = "local"


@dataclass(frozen=True)
class UploadSettings:
    """
    Settings injected into the upload coordinator and its collaborators.
    """
    staging_dir: Path = Path(DEFAULT_STAGING_DIR)
    max_chunk_size: int = MAX_CHUNK_SIZE_BYTES
    max_attempts: int = CHUNK_WRITE_MAX_ATTEMPTS
    backoff_seconds: float = CHUNK_WRITE_BACKOFF_SECONDS
    upload_ttl_seconds: int = UPLOAD_TTL_SECONDS
    sweep_interval_seconds: int = SWEEP_INTERVAL_SECONDS
    remote_backend: str = REMOTE_BACKEND_DRIVE
    drive_access_token: Optional[str] = None
    drive_api_base: str = DRIVE_API_BASE
    link_host: str = DRIVE_LINK_HOST
    local_remote_root: Path = Path(DEFAULT_LOCAL_REMOTE_ROOT)
    remote_timeout_seconds: float = REMOTE_TIMEOUT_SECONDS

    def __post_init__(self):
        if self.max_chunk_size <= 0:
            raise ValueError(f"max_chunk_size must be positive, got {self.max_chunk_size}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.remote_backend not in (REMOTE_BACKEND_DRIVE, REMOTE_BACKEND_LOCAL):
            raise ValueError(f"Unknown remote backend: {self.remote_backend!r}")

    def file_link(self, remote_id: str) -> str:
        return f"https://{self.link_host}/file/d/{remote_id}"

    def folder_link(self, container_id: str) -> str:
        return f"https://{self.link_host}/drive/folders/{container_id}"


def load_settings() -> UploadSettings:
    """
    Build settings from the process environment.

    Returns:
        UploadSettings with defaults for every unset variable
    """
    return UploadSettings(
        staging_dir=Path(os.environ.get("CHUNKRELAY_STAGING_DIR", DEFAULT_STAGING_DIR)),
        max_chunk_size=int(os.environ.get("MAX_CHUNK_SIZE") or MAX_CHUNK_SIZE_BYTES),
        max_attempts=int(os.environ.get("CHUNK_WRITE_MAX_ATTEMPTS", CHUNK_WRITE_MAX_ATTEMPTS)),
        backoff_seconds=float(os.environ.get("CHUNK_WRITE_BACKOFF_SECONDS", CHUNK_WRITE_BACKOFF_SECONDS)),
        upload_ttl_seconds=int(os.environ.get("UPLOAD_TTL_SECONDS", UPLOAD_TTL_SECONDS)),
        sweep_interval_seconds=int(os.environ.get("SWEEP_INTERVAL_SECONDS", SWEEP_INTERVAL_SECONDS)),
        remote_backend=os.environ.get("REMOTE_BACKEND", REMOTE_BACKEND_DRIVE).lower(),
        drive_access_token=os.environ.get("DRIVE_ACCESS_TOKEN"),
        drive_api_base=os.environ.get("DRIVE_API_BASE", DRIVE_API_BASE).rstrip("/"),
        link_host=os.environ.get("DRIVE_LINK_HOST", DRIVE_LINK_HOST),
        local_remote_root=Path(os.environ.get("LOCAL_REMOTE_ROOT", DEFAULT_LOCAL_REMOTE_ROOT)),
        remote_timeout_seconds=float(os.environ.get("REMOTE_TIMEOUT_SECONDS", REMOTE_TIMEOUT_SECONDS)),
    )
